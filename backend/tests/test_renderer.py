from tripmail.core.constants import BATCHED_UPDATE_TEMPLATE
from tripmail.schemas.notifications import PendingGroup, QueuedUpdate
from tripmail.schemas.trip_updates import (
    ActivityUpdate,
    ChecklistUpdate,
    LodgingUpdate,
    TransportationUpdate,
    UpdateKind,
)
from tripmail.services.batch_renderer import email_links, format_updaters, render_batch
from tripmail.services.email_service import render_template

TRIP = {"trip_name": "Lisbon Getaway", "trip_destination": "Lisbon, Portugal", "trip_link": "http://trips.test/trips/7"}


def _update(id_, kind, data, updater="Ana"):
    return QueuedUpdate(id=id_, kind=kind, data=data, updater_name=updater, updater_avatar="")


def _group(*updates):
    return PendingGroup(
        user_id=2,
        trip_id=7,
        recipient_name="Ben",
        recipient_email="ben@example.com",
        notifications=list(updates),
    )


def test_format_updaters():
    assert format_updaters([]) == "A trip member"
    assert format_updaters(["Ana"]) == "Ana"
    assert format_updaters(["Ana", "Ana"]) == "Ana"
    assert format_updaters(["Ana", "Ben"]) == "Ana and Ben"


def test_updaters_keep_first_appearance_order():
    group = _group(
        _update(1, UpdateKind.ACTIVITY, ActivityUpdate(**TRIP), updater="Caro"),
        _update(2, UpdateKind.LODGING, LodgingUpdate(**TRIP), updater="Ana"),
        _update(3, UpdateKind.ACTIVITY, ActivityUpdate(**TRIP), updater="Caro"),
        _update(4, UpdateKind.CHECKLIST, ChecklistUpdate(**TRIP), updater="Ben"),
    )

    message = render_batch(group, links={})

    assert message.template_data["updaters_text"] == "Caro, Ana and Ben"


def test_single_update_subject_names_the_kind():
    group = _group(_update(1, UpdateKind.LODGING, LodgingUpdate(lodging_name="Casa Azul", **TRIP)))

    message = render_batch(group, links={})

    assert message.subject == 'Update on trip "Lisbon Getaway": New Lodging Added'
    assert message.to == "ben@example.com"
    assert message.template_name == BATCHED_UPDATE_TEMPLATE
    assert message.template_data["total_updates"] == 1


def test_multiple_updates_subject_counts_them():
    group = _group(
        _update(1, UpdateKind.ACTIVITY, ActivityUpdate(**TRIP)),
        _update(2, UpdateKind.ACTIVITY, ActivityUpdate(**TRIP)),
        _update(3, UpdateKind.CHECKLIST, ChecklistUpdate(**TRIP)),
    )

    assert render_batch(group, links={}).subject == '3 updates on trip "Lisbon Getaway"'


def test_bucket_counts_match_input_kinds():
    group = _group(
        _update(1, UpdateKind.ACTIVITY, ActivityUpdate(activity_name="Tram 28", **TRIP)),
        _update(2, UpdateKind.TRANSPORTATION, TransportationUpdate(transport_type="Train", transport_from="Lisbon", transport_to="Sintra", **TRIP)),
        _update(3, UpdateKind.ACTIVITY, ActivityUpdate(activity_name="Fado", **TRIP)),
        _update(4, UpdateKind.LODGING, LodgingUpdate(lodging_name="Casa Azul", **TRIP)),
    )

    data = render_batch(group, links={}).template_data

    assert (data["activities_count"], data["transportation_count"], data["lodging_count"], data["checklists_count"]) == (2, 1, 1, 0)
    assert data["has_activities"] and data["has_transportation"] and data["has_lodging"]
    assert not data["has_checklists"]
    assert [a["name"] for a in data["activities"]] == ["Tram 28", "Fado"]
    assert data["transportation_items"][0]["from_location"] == "Lisbon"
    assert data["trip_destination"] == "Lisbon, Portugal"


def test_missing_fields_get_placeholders():
    group = _group(
        _update(1, UpdateKind.ACTIVITY, ActivityUpdate()),
        _update(2, UpdateKind.LODGING, LodgingUpdate()),
        _update(3, UpdateKind.TRANSPORTATION, TransportationUpdate()),
        _update(4, UpdateKind.CHECKLIST, ChecklistUpdate()),
    )

    data = render_batch(group, links={}).template_data

    assert data["trip_name"] == "your trip"
    assert data["trip_destination"] == "Unknown Destination"
    assert data["activities"][0] == {
        "name": "Untitled activity", "date": "N/A", "time": "", "location": "N/A", "added_by": "Ana",
    }
    assert data["lodging_items"][0]["address"] == "N/A"
    assert data["transportation_items"][0]["company"] == ""
    assert data["checklist_items"][0]["name"] == "Untitled checklist"


def test_footer_links_come_from_frontend_url():
    links = email_links("https://plan.example.com/")

    assert links["app_link"] == "https://plan.example.com/dashboard"
    assert links["unsubscribe_link"] == "https://plan.example.com/unsubscribe"
    assert links["facebook_link"] == "https://facebook.com"


def test_rendered_message_fills_the_html_template():
    group = _group(
        _update(1, UpdateKind.ACTIVITY, ActivityUpdate(activity_name="Tram 28", activity_date="2026-10-20", **TRIP)),
        _update(2, UpdateKind.CHECKLIST, ChecklistUpdate(checklist_name="Packing <list>", **TRIP), updater="Caro"),
    )
    message = render_batch(group, links=email_links("http://trips.test"))

    html, text = render_template(message.template_name, message.template_data)

    assert "Tram 28" in html
    assert "Packing &lt;list&gt;" in html
    assert "Ana and Caro" in html
    assert "http://trips.test/unsubscribe" in html
    assert "<" not in text
