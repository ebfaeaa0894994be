from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from tripmail.models.email_queue import PendingNotification
from tripmail.schemas.trip_updates import (
    ActivityUpdate,
    ChecklistUpdate,
    LodgingUpdate,
    TripInfo,
    UpdateKind,
)
from tripmail.services import email_queue_service
from tripmail.services.batch_renderer import render_batch
from tripmail.services.email_queue_service import (
    delete_processed_notifications,
    dispatch_and_purge,
    get_pending_notifications,
    notify_trip_members,
    process_email_queue,
)

from conftest import NOW, QUEUE_DURATION, FailingTransport


def _notify(db, trip, updater, kind, payload, *, age):
    info = TripInfo(name=trip.name, location=trip.location)
    return notify_trip_members(db, trip.id, updater.id, kind, payload, info, now=NOW - age)


def _pending_ids(db):
    return sorted(db.execute(select(PendingNotification.id)).scalars().all())


def _database_locked(*args, **kwargs):
    raise OperationalError("COMMIT", {}, Exception("database is locked"))


def test_dispatch_sends_then_deletes_exactly_the_loaded_rows(db, people, trip, transport):
    _notify(db, trip, people["ana"], UpdateKind.ACTIVITY, ActivityUpdate(activity_name="Tram 28"), age=timedelta(hours=2))
    group = get_pending_notifications(db, now=NOW, queue_duration=QUEUE_DURATION)[0]
    message = render_batch(group)
    # Arrives after the group was loaded: must survive the purge
    _notify(db, trip, people["caro"], UpdateKind.CHECKLIST, ChecklistUpdate(checklist_name="Docs"), age=timedelta(0))
    late_ids = set(_pending_ids(db)) - set(group.ids) - {
        r.id for r in db.execute(select(PendingNotification)).scalars() if r.user_id != group.user_id
    }

    assert dispatch_and_purge(db, group, message, transport) is True

    assert transport.messages == [message]
    remaining = set(_pending_ids(db))
    assert remaining.isdisjoint(group.ids)
    assert late_ids <= remaining


def test_transport_failure_still_purges(db, people, trip):
    _notify(db, trip, people["ana"], UpdateKind.LODGING, LodgingUpdate(lodging_name="Casa Azul"), age=timedelta(hours=2))
    group = get_pending_notifications(db, now=NOW, queue_duration=QUEUE_DURATION)[0]
    failing = FailingTransport()

    assert dispatch_and_purge(db, group, render_batch(group), failing) is True

    assert failing.calls == 1
    assert set(_pending_ids(db)).isdisjoint(group.ids)


def test_purge_failure_keeps_rows_for_next_cycle(db, people, trip, transport, monkeypatch):
    ana, ben = people["ana"], people["ben"]
    _notify(db, trip, ana, UpdateKind.LODGING, LodgingUpdate(lodging_name="Casa Azul"), age=timedelta(hours=3))
    _notify(db, trip, ana, UpdateKind.CHECKLIST, ChecklistUpdate(checklist_name="Packing"), age=timedelta(hours=2))
    group = next(g for g in get_pending_notifications(db, now=NOW, queue_duration=QUEUE_DURATION) if g.user_id == ben.id)
    first_message = render_batch(group)

    monkeypatch.setattr(db, "commit", _database_locked)
    assert dispatch_and_purge(db, group, first_message, transport) is False
    monkeypatch.undo()

    assert len(transport.messages) == 1
    retry = next(g for g in get_pending_notifications(db, now=NOW, queue_duration=QUEUE_DURATION) if g.user_id == ben.id)
    assert set(group.ids) <= set(retry.ids)
    retry_message = render_batch(retry)
    assert retry_message.subject == first_message.subject
    assert retry_message.template_data == first_message.template_data


def test_delete_processed_notifications_ignores_empty_list(db):
    assert delete_processed_notifications(db, []) == 0


def test_process_email_queue_sends_one_email_per_ready_group(db, people, trip, transport):
    ana, caro = people["ana"], people["caro"]
    _notify(db, trip, ana, UpdateKind.ACTIVITY, ActivityUpdate(activity_name="Tram 28"), age=timedelta(hours=2))
    _notify(db, trip, caro, UpdateKind.LODGING, LodgingUpdate(lodging_name="Casa Azul"), age=timedelta(minutes=90))

    processed = process_email_queue(db, transport, now=NOW, queue_duration=QUEUE_DURATION, links={})

    # Ben got both updates; Ana got Caro's; Caro got Ana's
    assert processed == 3
    by_recipient = {m.to: m for m in transport.messages}
    assert set(by_recipient) == {"ana@example.com", "ben@example.com", "caro@example.com"}
    assert by_recipient["ben@example.com"].subject == '2 updates on trip "Lisbon Getaway"'
    assert by_recipient["ben@example.com"].template_data["updaters_text"] == "Ana and Caro"
    assert by_recipient["caro@example.com"].subject == 'Update on trip "Lisbon Getaway": New Activity Added'
    assert _pending_ids(db) == []


def test_process_email_queue_empty_is_a_no_op(db, people, trip, transport):
    _notify(db, trip, people["ana"], UpdateKind.ACTIVITY, ActivityUpdate(), age=timedelta(minutes=10))

    assert process_email_queue(db, transport, now=NOW, queue_duration=QUEUE_DURATION) == 0
    assert transport.messages == []
    assert len(_pending_ids(db)) == 2


def test_selection_failure_aborts_the_tick(db, people, trip, transport, monkeypatch):
    _notify(db, trip, people["ana"], UpdateKind.ACTIVITY, ActivityUpdate(), age=timedelta(hours=2))
    monkeypatch.setattr(email_queue_service, "get_pending_notifications", _database_locked)

    assert process_email_queue(db, transport, now=NOW, queue_duration=QUEUE_DURATION) == 0
    assert transport.messages == []
    assert len(_pending_ids(db)) == 2


def test_one_bad_group_does_not_stop_the_others(db, people, trip, transport, monkeypatch):
    _notify(db, trip, people["ana"], UpdateKind.ACTIVITY, ActivityUpdate(), age=timedelta(hours=2))
    calls = []

    def flaky_render(group, links=None):
        calls.append(group.user_id)
        if len(calls) == 1:
            raise KeyError("boom")
        return render_batch(group, links=links)

    monkeypatch.setattr(email_queue_service, "render_batch", flaky_render)

    processed = process_email_queue(db, transport, now=NOW, queue_duration=QUEUE_DURATION, links={})

    assert processed == 1
    assert len(transport.messages) == 1
    assert len(_pending_ids(db)) == 1  # the failed group's row waits for the next tick
