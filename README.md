# cbfparse

`cbfparse` reads CBF diagnostic description files and turns the ECU they
describe into a JSON document. The document holds:

- the ECU's connections, one per interface sub-type: ISO-TP over CAN when
  the sub-type has a `CP_REQUEST_CANIDENTIFIER` parameter, otherwise LIN
  (KWP2000 at 10400 baud);
- its variants (the base variant whose name equals the ECU's is left out),
  each with its identification patterns (vendor name and vendor ID);
- each variant's fault codes, with the environment data recorded for them;
- each variant's diagnostic functions and routines, and its data downloads,
  with their request payloads and decoded parameters. Data services that
  share one payload are folded into a single `DT_xx_yy` service listing all
  their outputs. Services with an empty payload are left out.

## Installing

```
pip install .
```

There are no runtime dependencies beyond the standard library.

## Command line

Convert a CBF file into `<ECU NAME>.json` in the current directory:

```
cbfparse INPUT.CBF
```

Write the file's string table to a text file (one `index,""""text""""`
line per string) and stop, so the strings can be translated or edited:

```
cbfparse INPUT.CBF -dump_strings STRINGS.csv
```

Replace strings with those listed in such a file, then convert as above:

```
cbfparse INPUT.CBF -load_strings STRINGS.csv
```

The command exits with status 0 on success and 1 on any error. Paths ending
in `.cff` are refused.

## Library

```python
from cbfparse.container import read_cbf

container = read_cbf("INPUT.CBF")
ecu = container.ecus[0]
print(ecu.qualifier)
for variant in ecu.variants:
    print(variant.qualifier, len(variant.services), len(variant.dtcs))
```

- `cbfparse.container.Container.read` reads the headers from a
  `cbfparse.reader.BinaryReader`; `Container.read_ecus` then reads the ECUs.
  `Container.dump_strings` and `Container.load_strings` write and read the
  first language's string table.
- `cbfparse.cli.decode_ecu` turns an `ECU` into the JSON-ready dictionary
  the command writes; `merge_downloads` and `delete_input_params` are the
  steps it uses to tidy the services.
- `Presentation.create` (in `cbfparse.presentation`) gives the data format
  of a parameter: identical, binary, hex dump, boolean, table, linear or
  UTF-8 string.

Malformed or inconsistent files raise `cbfparse.reader.CaesarError` (or its
subclass `ProcessError`). Progress and warnings are reported through the
`logging` module.

## What it does not do

- The command converts only the first ECU in a file; the others are read
  but only reachable through the library.
- The `adjustments` and `actuations` lists in the JSON are always empty, and
  services of other types (sessions, jobs, I/O control, downloads) are not
  exported.
- CBF files can be read but not written, and CFF files are not supported.

## Tests

```
pip install .[test]
pytest
```