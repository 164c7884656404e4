# patclient

A toolkit for the local side of Winlink amateur radio email. It covers
Winlink message templates and HTML forms, a GPSd client, connection
prehooks and a few supporting helpers.

Python 3.10 or newer is required. The package has no third-party
dependencies.

```
pip install .
```

## Command line

The `patclient` command manages message templates:

```
patclient templates update      # download the latest standard form templates
patclient templates seqset 0    # set the template sequence number to 0
patclient version               # print the application version
```

Options given before the command:

- `--forms PATH` – forms directory (default: `Standard_Forms` in the user's
  data directory).
- `--mycall CALL` – your callsign; it is upper-cased.

The sequence number is kept in `template-sequence-number.json` in the user's
state directory.

## Modules

### `patclient.forms`

- `placeholder.placeholder_replacer(prefix, suffix, fields)` returns a
  function that replaces `prefix + key + suffix` with the key's value. Keys
  match case-insensitively and whitespace around the key is ignored.
- `prompt.prompt_asks`, `prompt_selects` and `prompt_vars` resolve `<Ask …>`,
  `<Select …>` and `<Var …>` fields through a callback; an empty `<Var>`
  answer becomes `blank`.
- `dates` holds the date and time formats of the insertion tags
  (`format_date_time`, `format_udtg`, `format_day`, …).
- `position.position_fmt(style, pos)` formats a position as signed decimal,
  decimal, degree-minute or Maidenhead grid square (`GPSStyle`);
  `grid_square(lat, lon)` gives the six character locator.
- `sequence.open_sequence(path)` opens the sequence file; `Sequence` has
  `load`, `set`, `incr` and `close` and works as a context manager.
- `template.read_template(path, files_map)` reads a template and resolves
  its input form, display form and reply template;
  `form_files_from_path(base_path)` maps HTML form and reply template names
  to their paths.
- `unzip.unzip(archive, dst_root)` extracts an archive, refusing entries
  that land outside `dst_root`.
- `settings.FormsConfig` and `GPSdConfig` configure the subsystem;
  `gps_position(config)` fetches the current position from GPSd (the address
  `mock` yields a fixed position).
- `builder.MessageBuilder` compiles a template and form values into a
  `Message` (to, cc, subject, body, attachments), including the
  `RMS_Express_Form_*.xml` attachment when the template has a display form.
  Replies take an `OriginalMessage` and get a quoted citation.
- `manager.Manager` ties it together: `build_form_folder`, `render_form`,
  `fill_form_template`, `compose_template` (interactive, on the terminal),
  `post_form_data` / `posted_form_data` / `cleanup_old_form_data`,
  `forms_version`, `is_newer_version`, `update_form_templates` and
  `seq_set`.

```python
from patclient.forms.placeholder import placeholder_replacer

replace = placeholder_replacer("<", ">", {"mykey": "foobar"})
replace("<   MyKey \t>")   # 'foobar'
```

```python
from patclient.forms.prompt import prompt_selects

line = "Subj: //WL2K <Select Prioritet:,Routine=R/,Priority=P/> report"
prompt_selects(line, lambda select: select.options[0])
# 'Subj: //WL2K R/ report'
```

```python
from datetime import datetime, timezone
from patclient.forms.dates import format_udtg

format_udtg(datetime(2024, 1, 1, 3, 59, 59, tzinfo=timezone.utc))
# '010359Z JAN 2024'
```

```python
from patclient.forms.sequence import open_sequence

with open_sequence("template-sequence-number.json") as seq:
    seq.incr(1)
```

### `patclient.gpsd`

`dial("host:port")` connects to a GPSd daemon and checks its protocol
version. `Conn.watch(True)` enables watch mode, `next()` returns the next
`TPV` or `Sky` report, `next_pos_timeout(seconds)` waits for a position with
a fix (raising `GPSdTimeoutError`), and `devices()` lists the known devices.

```python
from patclient import gpsd

with gpsd.dial("localhost:2947") as conn:
    conn.watch(True)
    pos = conn.next_pos_timeout(3)
```

### `patclient.prehook`

`wrap(sock)` returns a `Conn` on which a `Script` (executable, arguments,
environment) can be run. Received lines (ending in CR or LF) are forwarded
to the script's standard input with LF endings; its output is sent to the
remote side. `verify(file)` checks that the executable can be found.

### Other helpers

- `patclient.directories`: `data_dir`, `config_dir`, `state_dir`,
  `is_in_path`, and `migrate_legacy_data_dir` for files in `~/.wl2k`.
- `patclient.editor`: `executable`, `open_file`, `edit_text` using `$EDITOR`
  or `$VISUAL`.
- `patclient.buildinfo`: `version_string`, `version_string_short`,
  `user_agent`.
- `patclient.textutil.split_fields`: split on whitespace, `,` and `;`.
- `patclient.osutil.raise_open_file_limit`.

## Debugging

Set `PAT_DEBUG=1` in the environment to get `[DEBUG]` lines in the log.

## What this package does not do

It does not connect to Winlink stations or servers over any radio or
network transport, keep a mailbox, list RMS gateways, read or send
messages, or serve a web interface. Messages built from templates are
returned as `Message` objects; storing and delivering them is up to the
caller.