import json

import pytest

from hostagent.dependencies import CommandResult, Dependencies, NetInterface
from hostagent.inventory import (
    DryRunSettings,
    apply_dry_run_config,
    create_inventory_info,
    find_relevant_interface,
    read_inventory,
)
from hostagent.models import Interface, Inventory, MemoryMethod
from hostagent.routes import RouteEntry

FORCED_MAC = "02:00:00:00:00:aa"
FORCED_IP = "192.0.2.10/24"


class FakeHandler:
    def __init__(self, family, entries, names):
        self.family = family
        self._entries = entries
        self._names = names

    def get_route_list(self):
        return list(self._entries)

    def get_link_name(self, route):
        return self._names[route.link_index]


def _runner(outputs):
    def run(command, args):
        key = (command,) + tuple(args)
        if key in outputs:
            return outputs[key]
        return CommandResult("", f"{command}: No such file or directory", 1)

    return run


@pytest.fixture
def host_root(tmp_path):
    proc = tmp_path / "proc"
    proc.mkdir()
    (proc / "meminfo").write_text("MemTotal:       2048 kB\n")
    (proc / "cmdline").write_text("ro quiet BOOTIF=02:00:00:00:00:01\n")
    return tmp_path


@pytest.fixture
def nics():
    return [
        NetInterface(name="lo0", mac_address="02:00:00:00:00:02", addresses=()),
        NetInterface(
            name="eth0",
            mac_address="02:00:00:00:00:01",
            mtu=1500,
            addresses=("10.0.0.18/24",),
        ),
        NetInterface(
            name="eth1",
            mac_address="02:00:00:00:00:03",
            addresses=("10.0.0.19/24",),
        ),
    ]


@pytest.fixture
def dependencies(host_root, nics):
    outputs = {
        ("cat", "/sys/class/tpm/tpm0/tpm_version_major"): CommandResult("2\n", "", 0),
    }
    return Dependencies(
        root=str(host_root),
        runner=_runner(outputs),
        hostname_source=lambda: " myhostname.com \n",
        interface_source=lambda: list(nics),
    )


@pytest.fixture
def handlers():
    v4 = FakeHandler(
        2, [RouteEntry(link_index=0, destination=None, gateway="10.0.0.1", priority=100)], ["eth0"]
    )
    v6 = FakeHandler(10, [], [])
    return (v4, v6)


def test_read_inventory_collects_sections(dependencies, handlers):
    inventory = read_inventory(dependencies, handlers)
    assert inventory.hostname == "myhostname.com"
    assert inventory.tpm_version == "2.0"
    assert inventory.boot.pxe_interface == "02:00:00:00:00:01"
    assert inventory.boot.current_boot_mode == "bios"
    assert inventory.bmc_address == "0.0.0.0"
    assert inventory.bmc_v6address == "::/0"
    assert [i.name for i in inventory.interfaces] == ["lo0", "eth0", "eth1"]
    assert inventory.routes[0].interface == "eth0"
    assert inventory.routes[0].gateway == "10.0.0.1"
    assert inventory.routes[0].destination == "0.0.0.0"
    assert inventory.disks == []
    assert inventory.gpus == []


def test_read_inventory_memory_falls_back_to_meminfo(dependencies, handlers):
    inventory = read_inventory(dependencies, handlers)
    assert inventory.memory.physical_bytes == inventory.memory.usable_bytes
    assert inventory.memory.physical_bytes > 0
    assert inventory.memory.physical_bytes_method is MemoryMethod.MEMINFO


def test_read_inventory_dry_run_skips_bmc(dependencies, handlers):
    inventory = read_inventory(dependencies, handlers, dry_run=True)
    assert inventory.bmc_address == "0.0.0.0"
    assert inventory.bmc_v6address == "::/0"


def test_find_relevant_interface_first_with_ipv4():
    inventory = Inventory(
        interfaces=[
            Interface(name="a"),
            Interface(name="b", ipv4_addresses=["10.0.0.1/24"]),
            Interface(name="c", ipv4_addresses=["10.0.0.2/24"]),
        ]
    )
    assert find_relevant_interface(inventory) == 1


def test_find_relevant_interface_none_raises():
    inventory = Inventory(interfaces=[Interface(name="a", ipv6_addresses=["2001:db8::1/64"])])
    with pytest.raises(LookupError):
        find_relevant_interface(inventory)


def test_apply_dry_run_config_keeps_only_target():
    inventory = Inventory(
        interfaces=[
            Interface(name="a"),
            Interface(name="b", mac_address="02:00:00:00:00:05", ipv4_addresses=["10.0.0.1/24", "10.0.0.9/24"]),
            Interface(name="c", ipv4_addresses=["10.0.0.2/24"]),
        ]
    )
    settings = DryRunSettings(enabled=True, forced_mac_address=FORCED_MAC, forced_host_ipv4=FORCED_IP)
    apply_dry_run_config(settings, inventory)
    assert len(inventory.interfaces) == 1
    target = inventory.interfaces[0]
    assert target.name == "b"
    assert target.mac_address == FORCED_MAC
    assert target.ipv4_addresses == [FORCED_IP, "10.0.0.9/24"]


def test_apply_dry_run_config_without_candidate_leaves_inventory():
    interfaces = [Interface(name="a"), Interface(name="b")]
    inventory = Inventory(interfaces=list(interfaces))
    settings = DryRunSettings(enabled=True, forced_mac_address=FORCED_MAC, forced_host_ipv4=FORCED_IP)
    apply_dry_run_config(settings, inventory)
    assert inventory.interfaces == interfaces


def test_create_inventory_info_plain(dependencies, handlers):
    document = json.loads(create_inventory_info(dependencies, handlers))
    assert document["hostname"] == "myhostname.com"
    assert [i["name"] for i in document["interfaces"]] == ["lo0", "eth0", "eth1"]
    assert document["interfaces"][1]["ipv4_addresses"] == ["10.0.0.18/24"]


def test_create_inventory_info_matches_read_inventory(dependencies, handlers):
    document = json.loads(create_inventory_info(dependencies, handlers))
    assert document == read_inventory(dependencies, handlers).to_dict()


def test_create_inventory_info_dry_run(dependencies, handlers):
    settings = DryRunSettings(enabled=True, forced_mac_address=FORCED_MAC, forced_host_ipv4=FORCED_IP)
    document = json.loads(create_inventory_info(dependencies, handlers, settings))
    assert len(document["interfaces"]) == 1
    assert document["interfaces"][0]["name"] == "eth0"
    assert document["interfaces"][0]["mac_address"] == FORCED_MAC
    assert document["interfaces"][0]["ipv4_addresses"] == [FORCED_IP]
    assert document["bmc_address"] == "0.0.0.0"