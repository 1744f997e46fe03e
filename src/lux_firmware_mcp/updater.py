"""Three-phase firmware update over the local TCP link.

Phases::

    READY --Prepare (0x21)--> AWAITING_ACK --SendData (0x22) x N--> Reset (0x23)
                                                                  |
                                         status 1 --> SUCCEEDED   |
                                         otherwise --> failed, reset acked
    any phase --I/O failure / missing data / retries exhausted--> FAILED

The Prepare response may tell us to resume part way through the image.
Individual SendData failures are retried with a backoff until
``max_consecutive_failures`` in a row; everything else aborts the attempt.
Every outcome is returned as an :class:`UpdateResult`; the socket is
closed before :meth:`FirmwareUpdater.update_firmware` returns.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from .models.firmware import FirmwarePackage
from .models.progress import Phase, TransferProgress
from .protocol.commands import (
    MissingPackageData,
    build_prepare,
    build_reset,
    build_send_data,
)
from .protocol.parser import parse_prepare_response, parse_reset_response
from .transport.tcp_connection import TCPConnection

logger = logging.getLogger(__name__)

DEFAULT_SERIAL_NUMBER = "FFFFFFFFFFFFFFFFFFFF"

ProgressCallback = Callable[[int, int], None]


class UpdateErrorKind(str, Enum):
    """Why an update attempt did not succeed."""

    CONNECTION = "connection"
    PROTOCOL_DECODE = "protocol_decode"
    MISSING_PACKAGE_DATA = "missing_package_data"
    TRANSIENT_SEND_FAILURE = "transient_send_failure"
    DEVICE_REJECTED = "device_rejected"
    INVALID_PACKAGE = "invalid_package"
    CANCELLED = "cancelled"


@dataclass
class UpdateError:
    """Structured failure reason."""

    kind: UpdateErrorKind
    phase: str
    message: str
    package_index: int | None = None

    def __str__(self) -> str:
        where = self.phase
        if self.package_index is not None:
            where = f"{where}, package {self.package_index}"
        return f"{where}: {self.message}"


@dataclass
class UpdateResult:
    """Terminal outcome of one update attempt."""

    success: bool
    progress: TransferProgress
    error: UpdateError | None = None
    packages_sent: int = 0

    @property
    def phase(self) -> Phase:
        return self.progress.phase

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": self.success,
            "phase": self.progress.phase.value,
            "packages_sent": self.packages_sent,
            "progress": self.progress.to_dict(),
        }
        if self.error is not None:
            result["error"] = {
                "kind": self.error.kind.value,
                "phase": self.error.phase,
                "message": self.error.message,
                "package_index": self.error.package_index,
                "summary": str(self.error),
            }
        return result


@dataclass
class UpdaterSettings:
    """Timing and retry policy for the update loop."""

    max_consecutive_failures: int = 10
    package_interval: float = 0.1  # pacing between acknowledged packages
    retry_backoff: float = 0.5
    progress_every: int = 10

    def __post_init__(self) -> None:
        if self.max_consecutive_failures < 1:
            raise ValueError("max_consecutive_failures must be at least 1")
        if self.progress_every < 1:
            raise ValueError("progress_every must be at least 1")


class _Abort(Exception):
    """Internal: ends the attempt with a structured error."""

    def __init__(self, error: UpdateError) -> None:
        super().__init__(str(error))
        self.error = error


@dataclass
class _Attempt:
    package: FirmwarePackage
    progress: TransferProgress = field(default_factory=TransferProgress)
    packages_sent: int = 0


class FirmwareUpdater:
    """Drives one firmware update at a time over an exclusively owned connection.

    Usage::

        updater = FirmwareUpdater(TCPConnection(host), serial_number="BA12345678")
        result = updater.update_firmware(package)
        if not result.success:
            print(result.error)
    """

    def __init__(
        self,
        connection: TCPConnection,
        serial_number: str = DEFAULT_SERIAL_NUMBER,
        settings: UpdaterSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._connection = connection
        self._serial_number = serial_number
        self._settings = settings or UpdaterSettings()
        self._sleep = sleep
        self._progress: TransferProgress | None = None

    @property
    def progress(self) -> TransferProgress | None:
        """Progress record of the current or most recent attempt."""
        return self._progress

    def update_firmware(
        self,
        package: FirmwarePackage,
        progress_callback: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> UpdateResult:
        """Push a firmware package to the device.

        Args:
            package: Fully downloaded firmware package.
            progress_callback: Called with ``(package_index, total)`` every
                ``progress_every`` acknowledged packages and on the last one.
                Exceptions it raises are logged and the transfer continues.
            cancel_event: Checked before Prepare, before every SendData and
                before Reset; when set the attempt ends as cancelled.

        Returns:
            The terminal :class:`UpdateResult`.
        """
        attempt = _Attempt(package=package)
        self._progress = attempt.progress

        logger.info(
            "Starting firmware update: %s (%d packages, %s variant)",
            package.file_name or package.record_id or "<unnamed>",
            package.package_count,
            package.variant.name,
        )

        try:
            self._check_package(package)
            self._check_cancelled(cancel_event, "prepare")
            if not self._connection.connected and not self._connection.open():
                raise _Abort(UpdateError(
                    UpdateErrorKind.CONNECTION,
                    "connect",
                    f"Failed to connect to {self._connection.host}:{self._connection.port}",
                ))

            self._prepare(attempt)
            self._send_packages(attempt, progress_callback, cancel_event)
            self._check_cancelled(cancel_event, "reset")
            return self._reset(attempt)
        except _Abort as abort:
            attempt.progress.phase = Phase.FAILED
            logger.error("Firmware update failed (%s)", abort.error)
            return UpdateResult(
                success=False,
                progress=attempt.progress,
                error=abort.error,
                packages_sent=attempt.packages_sent,
            )
        finally:
            self._connection.close()

    # ─── PHASES ──────────────────────────────────────────────────────

    def _prepare(self, attempt: _Attempt) -> None:
        package = attempt.package
        progress = attempt.progress
        total = package.package_count

        frame = self._build(lambda: build_prepare(package, self._serial_number), "prepare")
        response = self._connection.send_and_receive(frame, "tcpUpdate_Prepare")
        if response is None:
            raise _Abort(UpdateError(
                UpdateErrorKind.CONNECTION, "prepare", "No response to prepare command"
            ))

        parsed = parse_prepare_response(response, total)
        if parsed is None:
            raise _Abort(UpdateError(
                UpdateErrorKind.PROTOCOL_DECODE,
                "prepare",
                f"Prepare response too short ({len(response) // 2} bytes)",
            ))

        progress.next_package_index = parsed.resume_index
        progress.standard_update_hint = parsed.standard_update
        progress.prepare_acked = True
        progress.phase = Phase.AWAITING_ACK
        logger.info("Prepare successful, starting from package %d", parsed.resume_index)

    def _send_packages(
        self,
        attempt: _Attempt,
        progress_callback: ProgressCallback | None,
        cancel_event: threading.Event | None,
    ) -> None:
        package = attempt.package
        progress = attempt.progress
        total = package.package_count
        settings = self._settings

        while progress.next_package_index <= total and progress.phase != Phase.FAILED:
            index = progress.next_package_index
            self._check_cancelled(cancel_event, "send_data", index)

            frame = self._build(
                lambda: build_send_data(package, self._serial_number, index),
                "send_data",
                index,
            )
            response = self._connection.send_and_receive(frame, f"tcpUpdate_Send_{index}")

            if not response:
                progress.consecutive_failures += 1
                logger.warning(
                    "No response for package %d (%d/%d consecutive failures)",
                    index,
                    progress.consecutive_failures,
                    settings.max_consecutive_failures,
                )
                if progress.consecutive_failures >= settings.max_consecutive_failures:
                    raise _Abort(UpdateError(
                        UpdateErrorKind.TRANSIENT_SEND_FAILURE,
                        "send_data",
                        f"Too many errors ({progress.consecutive_failures} in a row)",
                        index,
                    ))
                self._sleep(settings.retry_backoff)
                continue

            progress.consecutive_failures = 0
            progress.next_package_index = index + 1
            progress.last_package_sent_at = time.time()
            attempt.packages_sent += 1

            if index % settings.progress_every == 0 or index == total:
                logger.info(
                    "Progress: %d/%d packages sent (%d%%)", index, total, index * 100 // total
                )
                if progress_callback is not None:
                    try:
                        progress_callback(index, total)
                    except Exception:
                        logger.exception("Progress callback failed at package %d", index)

            self._sleep(settings.package_interval)

    def _reset(self, attempt: _Attempt) -> UpdateResult:
        package = attempt.package
        progress = attempt.progress

        frame = self._build(lambda: build_reset(package, self._serial_number), "reset")
        response = self._connection.send_and_receive(frame, "tcpUpdate_Reset")
        if response is None:
            raise _Abort(UpdateError(
                UpdateErrorKind.CONNECTION, "reset", "No response to reset command"
            ))

        progress.reset_acked = True
        parsed = parse_reset_response(response)
        if parsed is not None and parsed.accepted:
            progress.phase = Phase.SUCCEEDED
            logger.info("Firmware update completed successfully")
            return UpdateResult(
                success=True, progress=progress, packages_sent=attempt.packages_sent
            )

        # The device may still have applied the image; only the reply is
        # inconclusive, so the phase stays AWAITING_ACK.
        if parsed is None:
            error = UpdateError(
                UpdateErrorKind.PROTOCOL_DECODE,
                "reset",
                f"Reset response too short ({len(response) // 2} bytes)",
            )
        else:
            error = UpdateError(
                UpdateErrorKind.DEVICE_REJECTED,
                "reset",
                f"Device returned reset status 0x{parsed.status:02X}",
            )
        logger.error("Firmware update not confirmed (%s)", error)
        return UpdateResult(
            success=False,
            progress=progress,
            error=error,
            packages_sent=attempt.packages_sent,
        )

    # ─── HELPERS ─────────────────────────────────────────────────────

    @staticmethod
    def _check_package(package: FirmwarePackage) -> None:
        if not package.done_download:
            raise _Abort(UpdateError(
                UpdateErrorKind.MISSING_PACKAGE_DATA,
                "preflight",
                "Firmware package is not fully downloaded",
            ))
        if package.package_count == 0:
            raise _Abort(UpdateError(
                UpdateErrorKind.MISSING_PACKAGE_DATA,
                "preflight",
                "Firmware package contains no data",
            ))

    @staticmethod
    def _check_cancelled(
        cancel_event: threading.Event | None, phase: str, index: int | None = None
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise _Abort(UpdateError(
                UpdateErrorKind.CANCELLED, phase, "Update cancelled", index
            ))

    @staticmethod
    def _build(
        builder: Callable[[], bytes], phase: str, index: int | None = None
    ) -> bytes:
        try:
            return builder()
        except MissingPackageData as e:
            raise _Abort(UpdateError(
                UpdateErrorKind.MISSING_PACKAGE_DATA, phase, str(e), e.package_index
            )) from e
        except ValueError as e:
            raise _Abort(UpdateError(
                UpdateErrorKind.INVALID_PACKAGE, phase, str(e), index
            )) from e
