from pathlib import Path

from hostagent.dependencies import CommandResult, Dependencies, MemoryInfo
from hostagent.memory import get_memory
from hostagent.models import Memory, MemoryMethod

DMIDECODE_MB = """# dmidecode 3.2
Getting SMBIOS data from sysfs.
SMBIOS 3.1.1 present.

Handle 0x0003, DMI type 17, 40 bytes
Memory Device
\tArray Handle: 0x0002
\tError Information Handle: Not Provided
\tTotal Width: 64 bits
\tData Width: 64 bits
\tSize: 16384 MB
\tForm Factor: SODIMM
\tSet: None
\tLocator: ChannelA-DIMM0
\tBank Locator: BANK 0

Handle 0x0004, DMI type 17, 40 bytes
Memory Device
\tArray Handle: 0x0002
\tError Information Handle: Not Provided
\tTotal Width: 64 bits
\tData Width: 64 bits
\tSize: 16384 MB
\tForm Factor: SODIMM
\tSet: None
\tLocator: ChannelB-DIMM0
\tBank Locator: BANK 2
\tType: DDR4
"""

DMIDECODE_GB = DMIDECODE_MB.replace("16384 MB", "16384 GB")

MEMINFO_KB = """MemTotal:       32657728 kB
MemFree:         7779692 kB
MemAvailable:   20752724 kB
Buffers:         1374624 kB
"""

MEMINFO_MB = """MemTotal:       32657728 MB
MemFree:         7779692 kB
MemAvailable:   20752724 kB
Buffers:         1374624 kB
Cached:         12556080 kB
"""


def make_deps(tmp_path: Path, dmidecode=None, meminfo=None, memory=None):
    if meminfo is not None:
        (tmp_path / "proc").mkdir()
        (tmp_path / "proc" / "meminfo").write_text(meminfo)

    def runner(command, args):
        if (command, args) == ("dmidecode", ("-t", "17")) and dmidecode is not None:
            return CommandResult(dmidecode, "", 0)
        return CommandResult("", "dmidecode error", -1)

    return Dependencies(
        root=str(tmp_path),
        runner=runner,
        memory_source=(lambda: memory) if memory is not None else None,
    )


def test_execute_and_read_error(tmp_path):
    deps = make_deps(tmp_path, memory=MemoryInfo())
    ret = get_memory(deps)
    assert ret == Memory()
    assert ret.physical_bytes == 0
    assert ret.physical_bytes_method is None
    assert ret.usable_bytes == 0


def test_dmidecode_fallback_to_ghw(tmp_path):
    mem = MemoryInfo(total_physical_bytes=35184372088832, total_usable_bytes=34244109795328)
    deps = make_deps(tmp_path, meminfo=MEMINFO_KB, memory=mem)
    ret = get_memory(deps)
    assert ret.physical_bytes == 35184372088832
    assert ret.physical_bytes_method == MemoryMethod.GHW
    assert ret.usable_bytes == 33441513472


def test_ghw_fallback_to_usable(tmp_path):
    deps = make_deps(tmp_path, meminfo=MEMINFO_KB, memory=MemoryInfo())
    ret = get_memory(deps)
    assert ret.physical_bytes == ret.usable_bytes == 33441513472
    assert ret.physical_bytes_method == MemoryMethod.MEMINFO


def test_dmidecode_mb_meminfo_kb(tmp_path):
    deps = make_deps(tmp_path, dmidecode=DMIDECODE_MB, meminfo=MEMINFO_KB)
    assert get_memory(deps) == Memory(
        physical_bytes=34359738368,
        usable_bytes=33441513472,
        physical_bytes_method=MemoryMethod.DMIDECODE,
    )


def test_dmidecode_gb_meminfo_mb(tmp_path):
    deps = make_deps(tmp_path, dmidecode=DMIDECODE_GB, meminfo=MEMINFO_MB)
    assert get_memory(deps) == Memory(
        physical_bytes=35184372088832,
        usable_bytes=34244109795328,
        physical_bytes_method=MemoryMethod.DMIDECODE,
    )


def test_unknown_unit_falls_back_to_ghw(tmp_path):
    deps = make_deps(
        tmp_path,
        dmidecode="\tSize: 8 PB\n",
        meminfo=MEMINFO_KB,
        memory=MemoryInfo(total_physical_bytes=1024),
    )
    ret = get_memory(deps)
    assert ret.physical_bytes == 1024
    assert ret.physical_bytes_method == MemoryMethod.GHW


def test_missing_memory_source_falls_back_to_meminfo(tmp_path):
    deps = make_deps(tmp_path, meminfo=MEMINFO_MB)
    ret = get_memory(deps)
    assert ret.physical_bytes == 34244109795328
    assert ret.physical_bytes_method == MemoryMethod.MEMINFO


def test_meminfo_without_memtotal(tmp_path):
    deps = make_deps(tmp_path, dmidecode=DMIDECODE_MB, meminfo="MemFree: 10 kB\n")
    ret = get_memory(deps)
    assert ret.physical_bytes == 34359738368
    assert ret.usable_bytes == 0