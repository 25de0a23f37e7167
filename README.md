# nodeframe

Building blocks for the tooling of a node-based server framework:

- **`nodeframe.config`** holds `FrameConfig`, the framework's runtime
  settings. It reads `key=value` lines, where `##` starts a comment, and
  writes them back out. `config_keys()` lists the keys in file order.
- **`nodeframe.skiplist`** holds `SkipList`, an ordered set of unique values.
  The list grows its own height as it fills.
- **`nodeframe.static_map`** holds `StaticArraySet` and `StaticArrayMap`.
  Both are sorted once when built and looked up by binary search after that.
- **`nodeframe.msgdefs`** loads XML struct and RPC definitions into a
  `MessageCatalog`. The catalog holds `StructDef`s, `Message`s, `Rpc`s and
  `MsgGroup`s.
- **`nodeframe.apppre`** completes a project XML tree before it is loaded
  (`preprocess_apps`). It adds a `gateAuto` gate app and the
  `<app>ConTh` / `<app>NetTh` helper servers where they are needed.
- **`nodeframe.apploader`** reads a project XML file into a `ProjectSpec`,
  which holds apps, servers, endpoints and message catalogs.

The package uses only the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Frame configuration

```python
from nodeframe.config import FrameConfig

cfg = FrameConfig()
cfg.proc_cmd_args(["logLevel=3", "ip=10.0.0.5", "dumpMsg=true"])
cfg.dump_config("frame.txt")    # writes every setting, one per line

other = FrameConfig()
other.load_config("frame.txt")  # a missing file is created with the current settings
```

Each setting is a plain attribute, such as `cfg.log_level` or
`cfg.start_port`. `proc_cmd_args` ignores entries that are not in `key=value`
form, and it also ignores keys it does not know. Integer settings are held to
the range of their width.

## Skip list

```python
from nodeframe.skiplist import SkipList

sl = SkipList()
for v in (5, 1, 3):
    sl.insert(v)
list(sl)              # [1, 3, 5]
sl.insert(3)          # False: the value is already present
list(sl.range(1, 5))  # [1, 3]
sl.pop_until(3)       # removes and returns [1], the values below 3
```

`SkipList` also has these methods:

- `find` returns the stored equal value.
- `lower_bound` returns the first value that is not below its argument.
- `erase` removes a value.
- `pop_range(begin, end)` removes and returns the values from `begin` up to
  `end`.
- `level` and `level_size` inspect a single level.
- `clear` removes every value.

`SkipList(key=...)` orders the values by a key function. `rng=` takes a
`random.Random`, which makes the level choices reproducible.

## Static sorted containers

```python
from nodeframe.static_map import StaticArrayMap

m = StaticArrayMap([(3, "c"), (1, "a"), (2, "b")])
m.find(2)            # "b"
m.find(9)            # None
m.value_by_index(0)  # "a"
list(m.items())      # [(1, "a"), (2, "b"), (3, "c")]
```

## Message and project definitions

```python
from nodeframe.msgdefs import MessageCatalog, load_message_file
from nodeframe.apploader import load_project

catalog = MessageCatalog()
load_message_file("defMsg.xml", catalog)
ask = catalog.find_msg("loginAsk")
ask.msg_fun_dec      # generated handler declaration text

project = load_project("project.xml")
server = project.server_by_handle("loginServerHandle")
project.root_servers  # handles of servers with a default listener and no default connector
```

`load_project` runs `preprocess_apps` on the document and then loads the
message files named by `<defMsg file="...">`. The file paths are relative to
the project file. Malformed definitions raise `MsgLoadError` or
`AppXmlError`. Examples are duplicate names, a missing `<ask>` element and an
unknown endpoint.

## What this package does not do

The package reads definitions and settings and builds descriptions from
them. It generates no source files from a `ProjectSpec` or a
`MessageCatalog`. It has no network layer: nothing in it opens sockets,
accepts sessions or sends packets. It provides no command-line program.