# daeutil

Python helpers for building and inspecting a Linux transparent proxy:
prefix matching of IP ranges, a model of routing configuration, reading
geodata files, formatting kernel packet traces, kernel version detection
and `/proc/sys` utilities.

## Modules

- `daeutil.trie`: `Trie`, a static set of strings that answers whether any
  stored key is a prefix of a word (`has_prefix`). `ValidChars` sets the
  alphabet a trie accepts; a key with a character outside it raises
  `ValueError`, as does building a trie from no keys. `Trie.from_prefixes`
  builds a trie of IP networks, and `prefix_to_bin128` turns an address,
  network or interface into its 128-bit `'0'`/`'1'` key (IPv4 goes into the
  IPv4-mapped IPv6 space).
- `daeutil.anybuffer`: `Buffer`, a growable buffer of unsigned integers with
  separate length (`len()`) and capacity (`cap()`), and `grow`, `extend`,
  `truncate`, `reset` and `slice`. It raises `BufferTooLargeError` when it
  cannot grow.
- `daeutil.config_section`: the routing configuration model: `Section`,
  `Item` (with `ItemType`), `Param`, `Function` and `RoutingRule`, each with
  `to_string` in compact or spaced form, optionally quoting values.
- `daeutil.geodata`: `decode(filename, code)` and `emit_bytes(stream, code)`
  return the serialized GeoIP or GeoSite entry for a code (case-insensitive)
  without reading the whole list. Failures raise subclasses of
  `GeodataError`, such as `CodeNotFoundError` and `InvalidGeodataFileError`.
- `daeutil.trace`: `Kallsyms` (parse or load a kernel symbol table, look up
  by name, address or nearest address below), `TraceEvent.from_bytes` to
  decode a raw trace record, `SkbTracer` to group events per socket buffer
  and render report lines when the buffer is freed, and the helpers `htons`,
  `ntohs`, `tcp_flags` and `trim_null`.
- `daeutil.kernel_version`: `Version` (parse, build from a
  `LINUX_VERSION_CODE`, compare, `kernel()` code), `align`,
  `kernel_release()` and `kernel_version()`, which tries the vDSO first and
  falls back to the release string.
- `daeutil.vdso`: a minimal ELF reader (`ElfFile`, `ElfSection`),
  `vdso_memory_address` for an auxiliary-vector blob, `linux_version_code`
  for an ELF image, and `vdso_version()` for the running process. Errors
  raise `VdsoError`.
- `daeutil.netutils`: `check_ip_forward`, `set_forwarding`,
  `set_ipv4_forward`, `check_send_redirects` and `set_send_redirects` on a
  `/proc/sys` tree (the root can be changed with `proc_root`);
  `retrieve_original_dest` for `recvmsg` ancillary data; and display helpers
  `mac_to_string`, `process_name_to_string`, `qtype_to_string`,
  `format_dns_record` and `format_dns_records` (using dnspython).
- `daeutil.udp_task_pool`: `UdpTaskPool`, which runs the tasks emitted under
  one key one after another on a thread per key, and retires a key's queue
  once it has been idle for the aging time. `DEFAULT_UDP_TASK_POOL` is a
  shared instance.
- `daeutil.sysctl`: `SysctlManager`, which builds paths from dotted names
  (`key`), reads and writes values, and for values set with `watch=True`
  restores the expected value when it has changed. `check()` does this once;
  a background thread calls it every `poll_interval` seconds until `close()`.

## Install

```
pip install .
```

## Examples

```python
import ipaddress
from daeutil.trie import Trie, prefix_to_bin128

t = Trie.from_prefixes([ipaddress.ip_network("192.168.0.0/16")])
assert t.has_prefix(prefix_to_bin128(ipaddress.ip_network("192.168.3.4/32")))
```

```python
from daeutil.config_section import Function, Param, RoutingRule

rule = RoutingRule(
    [Function("domain", params=[Param(key="geosite", val="cn")])],
    Function("direct"),
)
assert rule.to_string(False, False, False) == "domain(geosite: cn) -> direct"
```

```python
from daeutil.kernel_version import Version

v = Version.parse("5.15.17-1-lts")
assert str(v) == "v5.15.17"
assert v < Version(6, 1)
```

```python
from daeutil.trace import Kallsyms, tcp_flags

syms = Kallsyms.parse(["ffffffff81000000 T _stext", "ffffffff81000100 T foo"])
assert syms.nearest(0xFFFFFFFF81000050).name == "_stext"
assert tcp_flags(0b00010010) == ".S"
```

## What it does not do

This is a library of parts. It has no command-line program and runs no proxy:
it does not load or attach kernel programs, capture or relay traffic, dial
outbound connections, or set up network namespaces. It models routing
configuration but does not parse configuration text. `SkbTracer` formats
trace events it is given; it does not collect them from the kernel.

## Tests

```
pip install .[test]
pytest
```