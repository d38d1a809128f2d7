from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Sequence

from ..analysis import VisionQuoteAnalyzer, data_url_from_path, map_analyzed_to_catalog, parse_analyzed_acts
from ..catalog import search_acts
from ..config import load_settings
from ..errors import AnalysisError
from ..logging import get_logger
from ..pricing import reference_price
from ..quotes import QuoteDatabase, QuoteService

LOG = get_logger("cli-main")


def _print_json(payload: object) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _add_quotes_cli(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    quotes_parser = subparsers.add_parser("quotes", help="Inspect stored practitioner quotes.")
    quotes_sub = quotes_parser.add_subparsers(dest="quotes_command", required=True)

    list_cmd = quotes_sub.add_parser("list", help="List stored quotes, newest first")
    list_cmd.add_argument("--json", action="store_true", help="Print full quote records as JSON")

    def _list(ns: argparse.Namespace) -> int:
        service = QuoteService(QuoteDatabase(root_dir=os.getcwd()), settings=load_settings(os.getcwd()))
        quotes = service.list_quotes()
        if ns.json:
            _print_json([q.to_dict() for q in quotes])
            return 0
        for q in quotes:
            print(
                f"{q.id}  {q.date[:10]}  {q.status:<8}  {q.total:>9.2f} €  "
                f"opens={q.open_count}  {q.patient_name}  {q.magic_link_url or ''}"
            )
        if not quotes:
            print("No quotes stored yet.")
        return 0

    list_cmd.set_defaults(handler=_list)

    stats_cmd = quotes_sub.add_parser("stats", help="Print dashboard statistics")

    def _stats(_: argparse.Namespace) -> int:
        service = QuoteService(QuoteDatabase(root_dir=os.getcwd()), settings=load_settings(os.getcwd()))
        _print_json(service.dashboard_stats().to_dict())
        return 0

    stats_cmd.set_defaults(handler=_stats)


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")

    parser = argparse.ArgumentParser(
        prog="klarity",
        description="Dental quote decoder: act catalog, quote links and vision analysis.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_cmd = subparsers.add_parser("init", help="Create/ensure the quote database schema exists")

    def _init(_: argparse.Namespace) -> int:
        db = QuoteDatabase(root_dir=os.getcwd())
        LOG.info(f"Quote DB ready at: {db.db_path}")
        print(db.db_path)
        return 0

    init_cmd.set_defaults(handler=_init)

    search_cmd = subparsers.add_parser("search", help="Search the CCAM act catalog")
    search_cmd.add_argument("term", nargs="?", default="", help="Code, label or keyword (empty lists everything)")
    search_cmd.add_argument("--json", action="store_true")

    def _search(ns: argparse.Namespace) -> int:
        hits = search_acts(ns.term)
        if ns.json:
            _print_json([a.to_dict() for a in hits])
            return 0
        for act in hits:
            print(f"{act.code:<8} {reference_price(act):>8.2f} €  {act.label_patient}")
        if not hits:
            print("Aucun acte trouvé.")
        return 0

    search_cmd.set_defaults(handler=_search)

    analyze_cmd = subparsers.add_parser("analyze", help="Analyse a quote image or PDF and print the mapped acts")
    analyze_cmd.add_argument("--source", required=True, help="Path to the quote (JPG/PNG/WEBP/PDF)")
    analyze_cmd.add_argument("--model", help="Override the vision model")
    analyze_cmd.add_argument("--mock", action="store_true", help="Return fixed acts without calling the model")

    def _analyze(ns: argparse.Namespace) -> int:
        settings = load_settings(os.getcwd())
        analyzer = VisionQuoteAnalyzer.from_settings(settings)
        if ns.model:
            analyzer.model = ns.model
        if ns.mock:
            analyzer.use_mock = True
        try:
            payload = analyzer.analyze(data_url_from_path(ns.source))
        except AnalysisError as exc:
            LOG.error(f"Analysis failed: {exc}")
            return 1
        acts = map_analyzed_to_catalog(parse_analyzed_acts(payload))
        _print_json({"raw": payload, "acts": [a.to_dict() for a in acts]})
        return 0

    analyze_cmd.set_defaults(handler=_analyze)

    serve_cmd = subparsers.add_parser("serve", help="Run the JSON API server.")
    serve_cmd.add_argument("--host", default="127.0.0.1")
    serve_cmd.add_argument("--port", type=int, default=8001)
    serve_cmd.add_argument("--log-level", default="info")
    serve_cmd.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )

    def _serve(ns: argparse.Namespace) -> int:
        from ..frontend import create_app
        import uvicorn

        app = create_app(root_dir=os.getcwd(), allow_origins=ns.allow_origins)
        uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
        return 0

    serve_cmd.set_defaults(handler=_serve)

    _add_quotes_cli(subparsers)

    args = parser.parse_args(provided)
    code = args.handler(args)
    LOG.debug(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
