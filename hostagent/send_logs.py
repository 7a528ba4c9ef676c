"""Collection of host logs and their upload to the installation service."""

from __future__ import annotations

import contextlib
import logging
import os
import posixpath
import shutil
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import IO, Callable, Iterable, Optional, Protocol

from .dependencies import CommandResult
from .models import LogsState

logger = logging.getLogger(__name__)

INSTALLER_GATHER_BIN = "/usr/local/bin/installer-gather.sh"
OVS_GATHER_BIN = "/usr/local/bin/ovs-installer-gather.sh"
INSTALLER_GATHER_ARCHIVE_PREFIX = "/root/log-bundle-"
LSBLK = "/usr/bin/lsblk"
FINDMNT = "/usr/bin/findmnt"
LS = "/bin/ls"
PVDISPLAY = "/usr/sbin/pvdisplay"
VGDISPLAY = "/usr/sbin/vgdisplay"
LVDISPLAY = "/usr/sbin/lvdisplay"

CommandRunner = Callable[[str, tuple], CommandResult]


class LogsSendError(Exception):
    """One or more steps of the log collection failed."""

    def __init__(self, *errors: object) -> None:
        messages: list[str] = []
        for error in errors:
            if isinstance(error, LogsSendError):
                messages.extend(error.errors)
            else:
                messages.append(str(error))
        self.errors = messages
        super().__init__("; ".join(messages))


def _combine(errors: list) -> Optional[LogsSendError]:
    return LogsSendError(*errors) if errors else None


@dataclass
class LogsSenderConfig:
    """What to collect and where the collected logs belong."""

    tags: list[str] = field(default_factory=list)
    services: list[str] = field(default_factory=list)
    since: str = ""
    host_id: str = ""
    cluster_id: str = ""
    infra_env_id: str = ""
    masters_ips: str = ""
    is_bootstrap: bool = False
    installer_gather_logging: bool = False
    clean_when_done: bool = False
    logs_dir: str = "/var/log"

    @property
    def archive_path(self) -> str:
        return posixpath.join(self.logs_dir, "logs.tar.gz")

    @property
    def host_logs_dir(self) -> str:
        return posixpath.join(self.logs_dir, f"logs_host_{self.host_id}")


class _Sender(Protocol):
    def execute(self, command: str, *args: str) -> CommandResult: ...

    def execute_privileged(self, command: str, *args: str) -> CommandResult: ...

    def execute_output_to_file(self, output_path: str, command: str, *args: str) -> CommandResult: ...

    def create_folder_if_not_exist(self, folder: str) -> None: ...

    def upload_file(self, path: str) -> None: ...

    def log_progress_report(self, state: LogsState) -> None: ...

    def gather_installer_logs(self, target_dir: str) -> None: ...

    def gather_error_logs(self, target_dir: str) -> None: ...


class LogsSender:
    """Runs the collection commands and talks to the service.

    Commands go to ``runner`` (privileged ones to ``privileged_runner``,
    which defaults to ``runner``). Archives go to ``uploader`` and
    progress states to ``progress_reporter``.
    """

    def __init__(
        self,
        config: LogsSenderConfig,
        *,
        runner: Optional[CommandRunner] = None,
        privileged_runner: Optional[CommandRunner] = None,
        uploader: Optional[Callable[[IO[bytes], LogsSenderConfig], None]] = None,
        progress_reporter: Optional[Callable[[LogsState, LogsSenderConfig], None]] = None,
        clock: Callable[[], datetime] = datetime.now,
        partial_interval: float = 60.0,
    ) -> None:
        self.config = config
        self._runner = runner
        self._privileged_runner = privileged_runner or runner
        self._uploader = uploader
        self._progress_reporter = progress_reporter
        self._clock = clock
        self._partial_interval = partial_interval

    @staticmethod
    def _run(runner: Optional[CommandRunner], command: str, args: tuple) -> CommandResult:
        if runner is None:
            return CommandResult("", f"{command}: command not found", 127)
        return runner(command, args)

    def execute(self, command: str, *args: str) -> CommandResult:
        return self._run(self._runner, command, args)

    def execute_privileged(self, command: str, *args: str) -> CommandResult:
        """Run a command in the host environment."""
        return self._run(self._privileged_runner, command, args)

    def execute_output_to_file(self, output_path: str, command: str, *args: str) -> CommandResult:
        """Run a command, writing its standard output to ``output_path``."""
        result = self.execute(command, *args)
        try:
            with open(output_path, "w", encoding="utf-8") as output:
                output.write(result.stdout)
        except OSError as exc:
            return CommandResult("", str(exc), -1)
        return CommandResult("", result.stderr, result.exit_code)

    def create_folder_if_not_exist(self, folder: str) -> None:
        os.makedirs(folder, 0o755, exist_ok=True)

    def upload_file(self, path: str) -> None:
        if self._uploader is None:
            raise LogsSendError("no uploader configured")
        with open(path, "rb") as upload:
            self._uploader(upload, self.config)

    def log_progress_report(self, state: LogsState) -> None:
        if self._progress_reporter is None:
            raise LogsSendError("no progress reporter configured")
        self._progress_reporter(state, self.config)

    def _collect_partial_logs(self, stop: threading.Event, target_dir: str, gather_id: str) -> None:
        partial_dir = posixpath.join(target_dir, "partial")
        partial_archive = posixpath.join(partial_dir, "log-bundle-partial.tar.gz")
        input_path = f"/tmp/artifacts-{gather_id}"
        try:
            self.create_folder_if_not_exist(partial_dir)
        except OSError as exc:
            logger.error("Failed to create directory %s: %s", partial_dir, exc)
            return
        while not stop.wait(self._partial_interval):
            result = self.execute(
                "tar", "-czvf", partial_archive,
                "-C", posixpath.dirname(input_path), posixpath.basename(input_path),
            )
            if result.exit_code != 0:
                logger.error("Failed to run to archive %s: %s", input_path, result.stderr)
                continue
            logger.info("uploading partial logs...")
            try:
                upload_logs(self, target_dir, self.config.archive_path)
            except LogsSendError as exc:
                logger.error("Failed to upload partial logs: %s", exc)
        shutil.rmtree(partial_dir, ignore_errors=True)

    def gather_installer_logs(self, target_dir: str) -> None:
        """Run the installer gather scripts and move their bundle into ``target_dir``."""
        errors: list = []
        gather_id = self._clock().strftime("%Y%m%d%H%M%S")
        masters_ips = self.config.masters_ips.split(",")

        # Partial bundles are uploaded until the gather scripts finish, so
        # the final, most complete bundle is the last to reach the service.
        stop = threading.Event()
        collector = threading.Thread(
            target=self._collect_partial_logs, args=(stop, target_dir, gather_id), daemon=True
        )
        collector.start()
        try:
            gather_args = ["--id", gather_id, *masters_ips]
            logger.info("Running %s %s", OVS_GATHER_BIN, gather_args)
            result = self.execute(OVS_GATHER_BIN, *gather_args)
            for line in result.stdout.split("\n"):
                logger.info("ovs-gather log: %s", line)
            if result.stderr or result.exit_code != 0:
                logger.warning("Failed to run %s %s: %s", OVS_GATHER_BIN, gather_args, result.stderr)
                errors.append(result.stderr)

            logger.info("Running %s %s", INSTALLER_GATHER_BIN, gather_args)
            result = self.execute_privileged(INSTALLER_GATHER_BIN, *gather_args)
            for line in result.stdout.split("\n"):
                logger.info("installer-gather log: %s", line)
            if result.stderr or result.exit_code != 0:
                logger.warning(
                    "Failed to run %s %s: %s", INSTALLER_GATHER_BIN, gather_args, result.stderr
                )
                errors.append(result.stderr)

            bundle = f"{INSTALLER_GATHER_ARCHIVE_PREFIX}{gather_id}.tar.gz"
            result = self.execute_privileged("mv", bundle, target_dir)
            if result.exit_code != 0:
                logger.error("Failed to: mv %s %s: %s", bundle, target_dir, result.stderr)
                errors.append(result.stderr)
        finally:
            stop.set()
            collector.join()
        error = _combine(errors)
        if error is not None:
            raise error

    def gather_error_logs(self, target_dir: str) -> None:
        """Write dmesg, core dumps and the whole journal into ``target_dir``."""
        errors: list = []
        steps = (
            lambda: get_dmesg_logs(self, posixpath.join(target_dir, "dmesg.logs")),
            lambda: get_core_dumps(self, target_dir),
            lambda: get_journal_logs(
                self, self.config.since, posixpath.join(target_dir, "journal.logs"), []
            ),
        )
        for step in steps:
            try:
                step()
            except LogsSendError as exc:
                errors.append(exc)
        error = _combine(errors)
        if error is not None:
            raise error


def _log_privileged_output(
    sender: _Sender, logfile: IO[str], errors: list, description: str, command: str, *args: str
) -> None:
    logfile.write(f"{description}\n")
    result = sender.execute_privileged(command, *args)
    logfile.write(result.stdout)
    if not result.stdout.endswith("\n"):
        logfile.write("\n")
    if result.exit_code != 0:
        logger.error("%s failed: %s", description, result.stderr)
        logfile.write(f"{result.stderr}\n")
        errors.append(f"{description}: {result.stderr}")


def get_mount_logs(sender: _Sender, output_path: str) -> None:
    """Write block device, mount and LVM listings to ``output_path``."""
    errors: list = []
    try:
        with open(output_path, "w", encoding="utf-8") as logfile:
            _log_privileged_output(
                sender, logfile, errors, "List block devices", LSBLK,
                "-o", "NAME,MAJ:MIN,SIZE,TYPE,FSTYPE,KNAME,MODEL,UUID,WWN,HCTL,VENDOR,STATE,TRAN,PKNAME",
            )
            _log_privileged_output(sender, logfile, errors, "List mounts", FINDMNT, "--df")
            for category in ("id", "path"):
                _log_privileged_output(
                    sender, logfile, errors, f"Disk mapping by {category}",
                    LS, "-l", f"/dev/disk/by-{category}",
                )
            _log_privileged_output(sender, logfile, errors, "Running pvdisplay", PVDISPLAY, "-v")
            _log_privileged_output(sender, logfile, errors, "Running vgdisplay", VGDISPLAY, "-v")
            _log_privileged_output(sender, logfile, errors, "Running lvdisplay", LVDISPLAY, "-v")
    except OSError as exc:
        raise LogsSendError(exc) from exc
    error = _combine(errors)
    if error is not None:
        raise error


def get_dmesg_logs(sender: _Sender, output_path: str) -> None:
    logger.info("Running dmesg")
    result = sender.execute_output_to_file(output_path, "dmesg", "-T")
    if result.exit_code != 0:
        logger.error("Failed to run dmesg command: %s", result.stderr)
        raise LogsSendError(result.stderr)


def get_core_dumps(sender: _Sender, target_dir: str) -> None:
    """Dump every listed core file into ``target_dir``; no list is not an error."""
    logger.info("Get coredump files")
    result = sender.execute_privileged("coredumpctl", "list", "--no-legend")
    if result.exit_code != 0:
        logger.info("Couldn't fetch coredump list: %s", result.stderr)
        return
    for line in result.stdout.removesuffix("\n").split("\n"):
        fields = line.split()
        if len(fields) < 10:
            continue
        pid = fields[4]
        exe = posixpath.basename(fields[9])
        output = posixpath.join(target_dir, f"coredump_exe_{exe}_pid_{pid}")
        dump = sender.execute_privileged("coredumpctl", "dump", pid, "--output", output)
        if dump.exit_code != 0:
            logger.error("Failed to read coredump for PID %s: %s", pid, dump.stderr)
            raise LogsSendError(dump.stderr)


def get_journal_logs(
    sender: _Sender, since: str, output_path: str, filter_params: Iterable[str]
) -> None:
    filter_params = list(filter_params)
    logger.info("Running journalctl %s", filter_params)
    args = ["-D", "/var/log/journal/", "--since", since, "--all", *filter_params]
    result = sender.execute_output_to_file(output_path, "journalctl", *args)
    if result.exit_code != 0:
        logger.error("Failed to run journalctl command: %s", result.stderr)
        raise LogsSendError(result.stderr)


def _report(sender: _Sender, state: LogsState) -> None:
    try:
        sender.log_progress_report(state)
    except Exception as exc:  # progress reports never stop the collection
        logger.error("failed to send log progress %s to service: %s", state.value, exc)


def upload_logs(sender: _Sender, input_path: str, archive_path: str) -> None:
    """Archive ``input_path`` into ``archive_path`` and upload the archive."""
    _report(sender, LogsState.COLLECTING)
    logger.info("Archiving %s and creating %s", input_path, archive_path)
    result = sender.execute(
        "tar", "-czvf", archive_path,
        "-C", posixpath.dirname(input_path), posixpath.basename(input_path),
    )
    if result.exit_code != 0:
        logger.error("Failed to run to archive %s: %s", input_path, result.stderr)
        raise LogsSendError(result.stderr)
    try:
        sender.upload_file(archive_path)
    except Exception as exc:
        logger.error("Failed to upload file %s to the service: %s", archive_path, exc)
        raise LogsSendError(exc) from exc


def send_logs(config: LogsSenderConfig, sender: _Sender) -> str:
    """Collect and upload the logs; returns the report of non-fatal failures.

    Raises LogsSendError when the logs cannot be stored, archived or uploaded.
    """
    errors: list = []
    _report(sender, LogsState.REQUESTED)
    logger.info(
        "Start gathering journalctl logs with tags %s, services %s and installer-gather",
        config.tags,
        config.services,
    )
    archive_path = config.archive_path
    tmp_dir = config.host_logs_dir
    try:
        try:
            sender.create_folder_if_not_exist(tmp_dir)
        except OSError as exc:
            logger.error("Failed to create directory %s: %s", tmp_dir, exc)
            raise LogsSendError(exc) from exc

        try:
            get_mount_logs(sender, posixpath.join(tmp_dir, "mount.logs"))
        except LogsSendError as exc:
            errors.append(exc)

        journal_targets = [(tag, [f"TAG={tag}"]) for tag in config.tags]
        journal_targets += [(service, ["-u", service]) for service in config.services]
        for name, params in journal_targets:
            try:
                get_journal_logs(sender, config.since, posixpath.join(tmp_dir, f"{name}.logs"), params)
            except LogsSendError as exc:
                errors.append(exc)

        if config.installer_gather_logging:
            try:
                sender.gather_error_logs(tmp_dir)
            except LogsSendError as exc:
                logger.error("Failed to gather coredumps and dmesg (ignoring for getting other logs): %s", exc)
                errors.append(exc)
            if config.is_bootstrap:
                try:
                    sender.gather_installer_logs(tmp_dir)
                except LogsSendError as exc:
                    logger.error("Failed to gather installer logs: %s", exc)
                    errors.append(exc)

        report = ""
        combined = _combine(errors)
        if combined is not None:
            report = str(combined)
            with contextlib.suppress(OSError):
                with open(posixpath.join(tmp_dir, "report.logs"), "w", encoding="utf-8") as out:
                    out.write(report)

        upload_logs(sender, tmp_dir, archive_path)
        _report(sender, LogsState.COMPLETED)
        return report
    finally:
        if config.clean_when_done:
            shutil.rmtree(tmp_dir, ignore_errors=True)
            with contextlib.suppress(OSError):
                os.remove(archive_path)