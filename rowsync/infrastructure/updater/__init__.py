from rowsync.infrastructure.updater.di import UpdaterProvider
from rowsync.infrastructure.updater.http import HttpRecordUpdater

__all__ = ["HttpRecordUpdater", "UpdaterProvider"]
