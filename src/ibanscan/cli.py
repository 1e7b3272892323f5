from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from ibanscan.db.migrate import init_db
from ibanscan.db.session import dispose_engine, make_engine, make_session_factory
from ibanscan.extract.candidates import extract_candidates
from ibanscan.iban.countries import COUNTRY_RULES, display_name
from ibanscan.iban.formatter import format_iban
from ibanscan.iban.validator import describe, validate
from ibanscan.ocr import ENGINE_NAMES, build_engine
from ibanscan.service.history import HistoryService
from ibanscan.service.scanner import ScanError, Scanner
from ibanscan.utils.config import DEFAULT_CONFIG, DEFAULT_CONFIG_NAME, deep_get, load_config, save_yaml
from ibanscan.utils.logging_setup import setup_logging
from ibanscan.utils.paths import AppPaths, default_data_dir, resolve_app_paths

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_ERROR = 2


def _default_config_path() -> Path:
    return default_data_dir() / DEFAULT_CONFIG_NAME


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="ibanscan", description="Validate, format and extract IBANs.")
    ap.add_argument("--config", default=None, help=f"YAML config (default: <data dir>/{DEFAULT_CONFIG_NAME})")
    ap.add_argument("--json", action="store_true", help="machine readable output")
    ap.add_argument("--lang", default=None, help="language for country names and messages (en, ar)")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", help="validate one IBAN")
    p.add_argument("text")

    p = sub.add_parser("format", help="print the IBAN in groups of four")
    p.add_argument("text")

    p = sub.add_parser("extract", help="find IBAN candidates in text (stdin when no text/file)")
    p.add_argument("text", nargs="?")
    p.add_argument("--file", type=Path, default=None)
    p.add_argument("--valid-only", action="store_true", help="keep checksum-valid candidates only")

    p = sub.add_parser("scan", help="OCR an image and detect the IBAN on it")
    p.add_argument("image", type=Path)
    p.add_argument("--engine", choices=ENGINE_NAMES, default=None)
    p.add_argument("--save", action="store_true", help="store a detected IBAN in the history")

    p = sub.add_parser("save", help="store an IBAN in the history")
    p.add_argument("text")

    p = sub.add_parser("history", help="saved IBANs")
    hsub = p.add_subparsers(dest="history_command", required=True)
    hp = hsub.add_parser("list")
    hp.add_argument("--limit", type=int, default=None)
    hp = hsub.add_parser("search")
    hp.add_argument("query")
    hp = hsub.add_parser("delete")
    hp.add_argument("record_id", type=int)
    hsub.add_parser("clear")
    hsub.add_parser("count")

    sub.add_parser("countries", help="supported countries")

    p = sub.add_parser("init-config", help="write a config file with defaults")
    p.add_argument("path", type=Path)
    p.add_argument("--force", action="store_true")
    return ap


def _emit(args: argparse.Namespace, payload: Any, text: str) -> None:
    if args.json:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        print(text)


def _record_line(rec) -> str:
    flag = "valid" if rec.is_valid else "invalid"
    when = rec.created_at.strftime("%Y-%m-%d %H:%M") if rec.created_at else "-"
    return f"#{rec.id}  {rec.formatted_iban}  {rec.country_code or '--'} {rec.country_name}  {flag}  {when}"


class _App:
    def __init__(self, args: argparse.Namespace, cfg: Dict[str, Any], paths: AppPaths, log: logging.Logger):
        self.args = args
        self.cfg = cfg
        self.paths = paths
        self.log = log
        self.lang = args.lang or deep_get(cfg, ["app", "language"]) or "en"
        self._engine = None

    def history(self) -> HistoryService:
        if self._engine is None:
            self._engine = make_engine(str(self.paths.db_path))
            init_db(self._engine)
        return HistoryService(make_session_factory(self._engine), self.log, self.lang)

    def close(self) -> None:
        if self._engine is not None:
            dispose_engine(self._engine)
            self._engine = None

    def cmd_validate(self) -> int:
        outcome = validate(self.args.text, self.lang)
        payload = dict(outcome.as_dict(), iban=format_iban(self.args.text), message=describe(outcome, self.lang))
        self._emit(payload, f"{format_iban(self.args.text)}: {describe(outcome, self.lang)}")
        return EXIT_OK if outcome.is_valid else EXIT_NOT_FOUND

    def cmd_format(self) -> int:
        formatted = format_iban(self.args.text)
        self._emit({"formatted": formatted}, formatted)
        return EXIT_OK

    def cmd_extract(self) -> int:
        if self.args.file is not None:
            try:
                text = self.args.file.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                self.log.error("cannot read %s: %s", self.args.file, exc)
                print(f"error: cannot read {self.args.file}: {exc}", file=sys.stderr)
                return EXIT_ERROR
        elif self.args.text is not None:
            text = self.args.text
        else:
            text = sys.stdin.read()
        candidates = extract_candidates(text)
        if self.args.valid_only:
            candidates = [c for c in candidates if validate(c, self.lang).is_valid]
        self._emit({"candidates": candidates}, "\n".join(candidates))
        return EXIT_OK if candidates else EXIT_NOT_FOUND

    def cmd_scan(self) -> int:
        engine = build_engine(self.cfg, self.paths.models_dir, self.args.engine)
        result = Scanner(engine, self.log, self.lang).scan_image(self.args.image)
        payload = result.as_dict()
        if result.selected is None:
            self._emit(payload, "No IBAN found")
            return EXIT_NOT_FOUND
        lines = [f"{format_iban(result.selected)}: {describe(result.outcome, self.lang)}"]
        if self.args.save and result.detected:
            rec, created = self.history().save(result.selected)
            if rec is not None:
                payload["record"] = dict(rec.as_dict(), created=created)
                lines.append(("Saved " if created else "Already saved ") + f"#{rec.id}")
        self._emit(payload, "\n".join(lines))
        return EXIT_OK if result.detected else EXIT_NOT_FOUND

    def cmd_save(self) -> int:
        rec, created = self.history().save(self.args.text)
        if rec is None:
            outcome = validate(self.args.text, self.lang)
            payload = dict(outcome.as_dict(), saved=False, message=describe(outcome, self.lang))
            self._emit(payload, f"Not saved: {describe(outcome, self.lang)}")
            return EXIT_NOT_FOUND
        prefix = "Saved" if created else "Already saved"
        self._emit(dict(rec.as_dict(), created=created), f"{prefix} {_record_line(rec)}")
        return EXIT_OK

    def cmd_history(self) -> int:
        svc = self.history()
        hc = self.args.history_command
        if hc in ("list", "search"):
            recs = svc.list(self.args.limit) if hc == "list" else svc.search(self.args.query)
            self._emit([r.as_dict() for r in recs], "\n".join(_record_line(r) for r in recs) or "History is empty")
            return EXIT_OK
        if hc == "delete":
            ok = svc.delete(self.args.record_id)
            self._emit({"deleted": ok}, f"Deleted #{self.args.record_id}" if ok else f"No record #{self.args.record_id}")
            return EXIT_OK if ok else EXIT_NOT_FOUND
        if hc == "clear":
            n = svc.clear()
            self._emit({"deleted": n}, f"Deleted {n} records")
            return EXIT_OK
        n = svc.count()
        self._emit({"count": n}, str(n))
        return EXIT_OK

    def cmd_countries(self) -> int:
        rows = [
            {"code": r.code, "expected_length": r.expected_length, "name": display_name(r.code, self.lang)}
            for r in COUNTRY_RULES.values()
        ]
        self._emit(rows, "\n".join(f"{r['code']}  {r['expected_length']:>2}  {r['name']}" for r in rows))
        return EXIT_OK

    def _emit(self, payload: Any, text: str) -> None:
        _emit(self.args, payload, text)


def _init_config(args: argparse.Namespace) -> int:
    path: Path = args.path
    if path.exists() and not args.force:
        print(f"{path} already exists (use --force to overwrite)", file=sys.stderr)
        return EXIT_ERROR
    save_yaml(path, DEFAULT_CONFIG)
    print(f"Config written to {path}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    if args.command == "init-config":
        return _init_config(args)

    cfg = load_config(Path(args.config) if args.config else _default_config_path())
    paths = resolve_app_paths(
        deep_get(cfg, ["app", "data_dir"]),
        deep_get(cfg, ["app", "db_path"]),
        deep_get(cfg, ["app", "log_dir"]),
        deep_get(cfg, ["ocr", "models_dir"]),
    )
    log = setup_logging(paths.log_dir, name="ibanscan")
    log.debug("command=%s config=%s", args.command, args.config)

    app = _App(args, cfg, paths, log)
    handler = getattr(app, "cmd_" + args.command.replace("-", "_"))
    try:
        return handler()
    except ScanError as exc:
        log.error("scan failed: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_ERROR
    except ValueError as exc:
        # unknown OCR engine name in config
        log.error("%s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_ERROR
    finally:
        app.close()


if __name__ == "__main__":
    raise SystemExit(main())
