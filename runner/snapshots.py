"""
Registro de snapshots (SnapshotRecorder).
Las fotos son inmutables; la poda solo borra las más viejas.
"""
from django.conf import settings
from django.db import transaction

from .models import SessionSnapshot


class SnapshotRecorder:

    def __init__(self, max_per_session=None):
        self.max_per_session = max_per_session

    def _retention(self):
        if self.max_per_session is not None:
            return self.max_per_session
        return settings.CBT_MAX_SNAPSHOTS_PER_SESSION

    def capture(self, session, snapshot_type, payload, now):
        with transaction.atomic():
            snapshot = SessionSnapshot.objects.create(
                session=session,
                snapshot_type=snapshot_type,
                snapshot_data=payload,
                created_at=now,
            )
            self.prune(session)
        return snapshot.id

    def latest(self, session, snapshot_type=None):
        snapshots = SessionSnapshot.objects.filter(session=session)
        if snapshot_type:
            snapshots = snapshots.filter(snapshot_type=snapshot_type)
        return snapshots.order_by('-created_at', '-id').first()

    def prune(self, session):
        keep = max(1, self._retention())
        stale_ids = list(
            SessionSnapshot.objects.filter(session=session)
            .order_by('-created_at', '-id')
            .values_list('id', flat=True)[keep:]
        )
        if stale_ids:
            SessionSnapshot.objects.filter(id__in=stale_ids).delete()
        return len(stale_ids)
