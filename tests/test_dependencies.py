import os

import pytest

from hostagent.dependencies import (
    BlockDisk,
    CommandResult,
    Dependencies,
    HardwareInfoUnavailable,
    MemoryInfo,
)


@pytest.fixture
def host(tmp_path):
    (tmp_path / "proc").mkdir()
    (tmp_path / "proc" / "cmdline").write_bytes(b"quiet BOOTIF=x\n")
    by_id = tmp_path / "dev" / "disk" / "by-id"
    by_id.mkdir(parents=True)
    (tmp_path / "dev" / "sda").write_bytes(b"")
    os.symlink("../../sda", by_id / "wwn-abc")
    (by_id / "plain").write_bytes(b"")
    return tmp_path


def test_read_file_is_relative_to_root(host):
    deps = Dependencies(root=str(host))
    assert deps.read_file("/proc/cmdline") == b"quiet BOOTIF=x\n"


def test_stat_reports_directories(host):
    deps = Dependencies(root=str(host))
    assert deps.stat("/proc").is_dir() is True
    assert deps.stat("/proc/cmdline").is_dir() is False
    assert deps.stat("/proc/cmdline").name == "cmdline"


def test_stat_missing_raises(host):
    deps = Dependencies(root=str(host))
    with pytest.raises(FileNotFoundError):
        deps.stat("/sys/firmware/efi")


def test_read_dir_sorted_and_symlinks(host):
    deps = Dependencies(root=str(host))
    entries = deps.read_dir("/dev/disk/by-id")
    assert [entry.name for entry in entries] == ["plain", "wwn-abc"]
    assert [entry.is_symlink() for entry in entries] == [False, True]


def test_eval_symlinks_resolves_inside_root(host):
    deps = Dependencies(root=str(host))
    assert deps.eval_symlinks("/dev/disk/by-id/wwn-abc") == "/dev/sda"


def test_eval_symlinks_missing_raises(host):
    deps = Dependencies(root=str(host))
    with pytest.raises(FileNotFoundError):
        deps.eval_symlinks("/dev/disk/by-id/absent")


def test_execute_passes_arguments_to_runner():
    calls = []

    def runner(command, args):
        calls.append((command, args))
        return CommandResult("out", "", 0)

    result = Dependencies(runner=runner).execute("lscpu", "-J")
    assert result.stdout == "out"
    assert calls == [("lscpu", ("-J",))]


def test_execute_without_runner_fails():
    result = Dependencies().execute("lscpu", "-J")
    assert result.exit_code == 127
    assert result.ok is False


def test_hardware_sources():
    disks = [BlockDisk(name="sda")]
    seen = []

    def block_source(chroot):
        seen.append(chroot)
        return disks

    deps = Dependencies(block_source=block_source, memory_source=lambda: MemoryInfo(5, 4))
    assert deps.block(deps.ghw_chroot_root()) == disks
    assert seen == ["/host"]
    assert deps.memory().total_physical_bytes == 5


def test_missing_source_raises_oserror():
    deps = Dependencies()
    with pytest.raises(HardwareInfoUnavailable):
        deps.gpu()
    with pytest.raises(OSError):
        deps.interfaces()


def test_hostname_source_is_used():
    assert Dependencies(hostname_source=lambda: "node-7").hostname() == "node-7"