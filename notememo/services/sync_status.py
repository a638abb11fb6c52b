"""Sync status reporting for display.

The reporter listens to every coordinator of a device and folds their phase
changes and pass results into a single display state. The known-device list
is diagnostic only and plays no part in merging.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from notememo.constants import EntityType, SyncDisplayState, SyncOutcome, SyncPhase
from notememo.remote_gateway.base import RemoteAuthError, RemoteStoreUnavailable, RemoteSyncDisabled
from notememo.remote_gateway.client import NoteMemoClient
from notememo.schemas import SyncInfoItem, SyncStatusResponse
from notememo.services.sync_coordinator import SyncResult
from notememo.utils.datetime_utils import is_newer

logger = logging.getLogger(__name__)

_BUSY_PHASES = frozenset(SyncPhase) - {SyncPhase.IDLE, SyncPhase.ERROR}


@dataclass
class SyncStatusSnapshot:
    """Point-in-time view of a device's sync status."""

    state: SyncDisplayState
    last_sync_time: str | None = None
    message: str | None = None
    user_id: str | None = None
    devices: list[SyncInfoItem] = field(default_factory=list)
    results: dict[EntityType, SyncResult] = field(default_factory=dict)


class SyncStatusReporter:
    """Derives ``checking | enabled | disabled | error | syncing``.

    Precedence: any coordinator mid-pass shows *syncing*; an explicit
    disable or a refused pass shows *disabled*; a failed latest pass or an
    unreachable status check shows *error*; a successful pass or a confirmed
    server shows *enabled*; before any of that the state is *checking*.
    """

    def __init__(self) -> None:
        self._phases: dict[EntityType, SyncPhase] = {}
        self._results: dict[EntityType, SyncResult] = {}
        self._enabled: bool | None = None
        self._message: str | None = None
        self._user_id: str | None = None
        self._last_sync_time: str | None = None
        self._devices: list[SyncInfoItem] = []
        self._unreachable = False

    # ------------------------------------------------------------------
    # Listener interface
    # ------------------------------------------------------------------

    def on_phase(self, entity: EntityType, phase: SyncPhase) -> None:
        self._phases[entity] = phase

    def on_result(self, result: SyncResult) -> None:
        if result.status == SyncOutcome.SKIPPED:
            return
        self._results[result.entity] = result
        if result.ok:
            self._unreachable = False
            if is_newer(result.sync_time, self._last_sync_time):
                self._last_sync_time = result.sync_time
            self._message = None
        elif result.error:
            self._message = result.error

    # ------------------------------------------------------------------
    # Explicit state changes
    # ------------------------------------------------------------------

    def mark_enabled(self, user_id: str | None) -> None:
        self._enabled = True
        self._unreachable = False
        self._user_id = user_id
        self._message = None
        self._results.clear()

    def mark_disabled(self, message: str | None = None) -> None:
        self._enabled = False
        self._unreachable = False
        self._message = message
        self._results.clear()

    async def refresh_devices(self, client: NoteMemoClient) -> SyncStatusResponse | None:
        """Ask the server for the user identity and its known devices.

        Returns:
            The parsed ``GET /api/sync`` response, or None if it could not be
            obtained (the reason is kept as the status message).
        """
        try:
            payload = await client.get_json("/api/sync")
            response = SyncStatusResponse.model_validate(payload)
        except (RemoteAuthError, RemoteSyncDisabled) as exc:
            self.mark_disabled(exc.message)
            return None
        except RemoteStoreUnavailable as exc:
            logger.warning("Could not fetch sync status: %s", exc.message)
            self._message = exc.message
            self._unreachable = True
            return None
        except ValidationError as exc:
            logger.warning("Malformed sync status response: %s", exc)
            self._message = "Malformed sync status response"
            self._unreachable = True
            return None

        if not response.enabled:
            self.mark_disabled(response.message)
            return response

        self._unreachable = False
        self._devices = list(response.sync_info)
        self._user_id = response.user_id
        if self._enabled is None:
            self._enabled = True
        return response

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> SyncDisplayState:
        if any(phase in _BUSY_PHASES for phase in self._phases.values()):
            return SyncDisplayState.SYNCING
        if self._enabled is False:
            return SyncDisplayState.DISABLED

        outcomes = {r.status for r in self._results.values()}
        if SyncOutcome.DISABLED in outcomes:
            return SyncDisplayState.DISABLED
        if outcomes & {SyncOutcome.OFFLINE, SyncOutcome.ERROR} or self._unreachable:
            return SyncDisplayState.ERROR
        if SyncOutcome.SYNCED in outcomes or self._enabled:
            return SyncDisplayState.ENABLED
        return SyncDisplayState.CHECKING

    @property
    def last_sync_time(self) -> str | None:
        return self._last_sync_time

    @property
    def devices(self) -> list[SyncInfoItem]:
        return list(self._devices)

    def snapshot(self) -> SyncStatusSnapshot:
        return SyncStatusSnapshot(
            state=self.state,
            last_sync_time=self._last_sync_time,
            message=self._message,
            user_id=self._user_id,
            devices=list(self._devices),
            results=dict(self._results),
        )
