# hostagent

`hostagent` builds a hardware and network inventory of a Linux host and
gathers its diagnostic logs for upload. It is meant for agents that run on
machines about to be installed. Such an agent reports what the machine looks
like and ships its logs to a central service.

## Inventory collectors

Each part of the inventory comes from its own function:

| Module | Function | Result |
| --- | --- | --- |
| `hostagent.bmc` | `get_bmc_address`, `get_bmc_v6_address` | BMC IPv4 / IPv6 address from `ipmitool lan print` / `lan6 print` output, channels 1 to 12 |
| `hostagent.boot` | `get_boot` | boot mode (`bios` / `uefi`) and the `BOOTIF=` value of `/proc/cmdline` |
| `hostagent.cpu` | `get_cpu` | architecture, model name, count, highest frequency and flags from `lscpu -J` |
| `hostagent.disks` | `get_disks`, `should_return_disk` | block devices with path, by-id, by-path, drive type, SMART data, holders and installation eligibility |
| `hostagent.gpu` | `get_gpus` | graphics cards with vendor and product ids |
| `hostagent.hostname` | `get_hostname` | the trimmed host name |
| `hostagent.interfaces` | `get_interfaces`, `ip_with_cidr_in_cidr` | network interfaces with addresses (link-local IPv6 left out), flags, MTU, speed, carrier |
| `hostagent.memory` | `get_memory` | physical memory (from dmidecode, the hardware scan, or `/proc/meminfo`, and which one) and usable memory |
| `hostagent.routes` | `get_routes`, `get_ip_routes`, `RouteHandler` | IPv4 and IPv6 routes |
| `hostagent.system_vendor` | `get_vendor`, `is_virtual`, `is_ovirt_platform` | manufacturer, product, serial and virtual-machine detection |
| `hostagent.tpm` | `get_tpm` | TPM version: `1.2`, `2.0`, `none`, or `""` when it cannot be read |

The records they return are the dataclasses in `hostagent.models`:
`Boot`, `CPU`, `Disk`, `DiskInstallationEligibility`, `Gpu`, `Interface`,
`Memory`, `Route`, `SystemVendor` and `Inventory`, plus the enums
`DriveType`, `MemoryMethod` and `LogsState`.

A failed probe never raises. A command that exits non-zero, an unreadable
file or malformed output leaves the matching fields empty. The exception is
`get_ip_routes`, which raises `OSError`; `get_routes` catches it and leaves
that address family out.

## Where the data comes from

Every collector except the routes reads the host through a
`hostagent.dependencies.Dependencies` object:

- `read_file`, `stat`, `read_dir`, `eval_symlinks` and `abs_path` work on
  the file system below `root` (default `/`).
- `execute(command, *args)` hands the command to the `runner` callable,
  which is called as `runner(command, args)` and returns a `CommandResult`
  (`stdout`, `stderr`, `exit_code`). Without a runner every command
  reports exit code 127.
- `hostname`, `interfaces`, `block`, `gpu`, `memory` and `product` call the
  matching source callables (`hostname_source`, `interface_source`,
  `block_source`, `gpu_source`, `memory_source`, `product_source`). They
  return `NetInterface`, `BlockDisk`, `GraphicsCard`, `MemoryInfo` and
  `ProductInfo` values. A source that was not given raises
  `HardwareInfoUnavailable`, and the collector then reports nothing for it.
- `ghw_chroot_root()` returns the `ghw_chroot` directory (default `/host`)
  that is passed to the block and product sources.

```python
from hostagent.cpu import get_cpu
from hostagent.dependencies import CommandResult, Dependencies
from hostagent.tpm import get_tpm


def runner(command, args):
    if command == "cat":
        return CommandResult("2\n", "", 0)
    return CommandResult("", f"{command}: not available", 1)


dependencies = Dependencies(runner=runner)
print(get_tpm(dependencies))  # 2.0
print(get_cpu(dependencies))  # an empty CPU record: lscpu failed
```

Routes come from `RouteHandler(family)` objects (`FAMILY_IPV4` = 2,
`FAMILY_IPV6` = 10). These read `/proc/net/route` and
`/proc/net/ipv6_route`, or the files below another `proc_root`. Any object
with a `family` attribute, `get_route_list()` returning `RouteEntry` values
and `get_link_name(route)` can stand in for one.

## Building a full inventory

`hostagent.inventory.read_inventory(dependencies, route_handlers, dry_run)`
runs every collector and returns an `Inventory`. `route_handlers` is an
(IPv4, IPv6) pair; when it is `None` the kernel tables are read.
`Inventory.to_dict()` gives a plain mapping in which sections that are
`None` are left out. `Inventory.to_json()` gives compact JSON.

`create_inventory_info(dependencies, route_handlers, settings)` returns that
JSON as bytes. When `settings` is a `DryRunSettings` with `enabled=True`, it
does three more things:

- it skips the slow probes: the BMC addresses become `0.0.0.0` and `::/0`,
  and SMART data is a fixed sample;
- it keeps only the first interface that has an IPv4 address
  (`find_relevant_interface`, which raises `LookupError` when none has one);
- it gives that interface `forced_mac_address` and `forced_host_ipv4`
  (`apply_dry_run_config`).

## Sending logs

`hostagent.send_logs.send_logs(config, sender)` takes a `LogsSenderConfig`.
Its files go into `logs_host_<host_id>` under `logs_dir` (default
`/var/log`). It collects:

- `mount.logs`: lsblk, findmnt, the by-id and by-path listings, and the
  pv/vg/lvdisplay output;
- one journal file for each entry of `tags` and `services`, since `since`;
- with `installer_gather_logging`: dmesg, core dumps and the whole journal;
- with `installer_gather_logging` and `is_bootstrap`: the installer gather
  bundles.

It then archives the directory into `logs.tar.gz` and uploads it, reporting
`LogsState` progress on the way. Failures of individual steps do not stop
the run. They are joined into a report, which is written to `report.logs`
and returned as a string. `LogsSendError` (its `errors` attribute lists the
messages) is raised when the directory cannot be created, or when the
archive cannot be made or uploaded. With `clean_when_done` the directory and
the archive are removed afterwards.

`LogsSender(config, runner=..., privileged_runner=..., uploader=...,
progress_reporter=...)` does the work:

- it runs commands through the given runners;
- `upload_file` passes an open archive and the config to `uploader`;
- `log_progress_report` passes each state and the config to
  `progress_reporter`;
- `gather_installer_logs` uploads partial bundles every `partial_interval`
  seconds until the gather scripts finish.

The helpers `get_mount_logs`, `get_dmesg_logs`, `get_core_dumps`,
`get_journal_logs` and `upload_logs` can be used on their own.

## What the package does not do

- There is no command-line program. The package is a library.
- It does not run commands by itself. Without a `runner`, every command
  reports failure.
- It does not scan block devices, network interfaces, GPUs, memory modules
  or product data by itself. You provide those sources.
- It has no client for the installation service. Uploads and progress
  reports go to the callables you pass to `LogsSender`.

## Testing

Install the `test` extra and run `pytest`.