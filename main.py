from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path


def _ensure_project_root() -> None:
    root = Path(__file__).resolve().parent
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Parse and fill FSOP quality forms (.docx).")
    commands = parser.add_subparsers(dest="command", required=True)

    parse_cmd = commands.add_parser("parse", help="extract the form structure as JSON")
    parse_cmd.add_argument("docx", help="path to the .docx form")
    parse_cmd.add_argument("-o", "--output", help="JSON output path")

    inject_cmd = commands.add_parser("inject", help="write values into the form in place")
    inject_cmd.add_argument("docx", help="path to the .docx form")
    inject_cmd.add_argument("instructions", help="JSON file with the values to inject")
    inject_cmd.add_argument("--keep-backup", action="store_true", help="keep <docx>.backup")
    return parser


def _run_parse(args: argparse.Namespace) -> None:
    from fsop_parser.document_parser import FsopParser

    parser = FsopParser()
    document = parser.parse(args.docx)
    output = parser.export_json(document, args.output)
    print(f"sections: {len(document.sections)}")
    print(f"checkboxes: {len(document.checkboxes)}")
    print(f"text fields: {len(document.text_fields)}")
    print(f"placeholders: {', '.join(document.placeholders) or '-'}")
    print(f"written: {output}")


def _run_inject(args: argparse.Namespace) -> None:
    from fsop_parser.injector import FsopInjector, InjectionInstructions

    with Path(args.instructions).open("r", encoding="utf-8") as handle:
        instructions = InjectionInstructions.from_dict(json.load(handle))
    injector = FsopInjector(keep_backup=args.keep_backup)
    path = injector.inject_file(args.docx, instructions)
    print(f"written: {path}")


def main(argv: list[str] | None = None) -> int:
    _ensure_project_root()
    from fsop_parser.errors import FsopError

    args = _build_arg_parser().parse_args(argv)
    try:
        if args.command == "parse":
            _run_parse(args)
        else:
            _run_inject(args)
    except FsopError as exc:
        print(exc.code, file=sys.stderr)
        print(str(exc), file=sys.stderr)
        return 1
    except (FileNotFoundError, IsADirectoryError) as exc:
        print(f"FILE_NOT_FOUND: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"INVALID_INPUT: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
