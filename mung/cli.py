# mung/cli.py
from __future__ import annotations
import argparse
import io
import json
import logging
import os
import sys
from typing import BinaryIO, Iterable, List, Optional, TextIO

from pymongo.errors import PyMongoError

from mql.compiler import ShellCompiler, pointer_for
from mql.errors import CommandSyntaxError, MungError, TranslationError
from mql.reader import CommandStreamReader

from .errors import ExecutionError, OutputError
from .executor import Executor
from .log import setup_logging
from .mongo_store import MongoStore
from .storage_iface import JsonlStore, Store
from .writer import OutputWriter

logger = logging.getLogger(__name__)

DEFAULT_URL = "mongodb://127.0.0.1:27017"
DEFAULT_DB = "test"
JSONL_SCHEME = "jsonl:"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_SYNTAX = 3
EXIT_TRANSLATION = 4
EXIT_EXECUTION = 5
EXIT_OUTPUT = 6


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="mung",
        description="Run shell-style document database commands and stream the results as JSON.",
    )
    ap.add_argument("-v", "--verbose", action="count", default=0,
                    help="more logging on stderr (-v debug, -vv also parser tracing)")
    ap.add_argument("-d", "--dbname", default=os.environ.get("MONGO_DB", DEFAULT_DB),
                    help="database name (env MONGO_DB, default: test)")
    ap.add_argument("-c", "--compact", action="store_true",
                    help="one JSON document per line (JSONL)")
    ap.add_argument("-u", "--url", default=os.environ.get("MONGO_URL", DEFAULT_URL),
                    help="server URL (env MONGO_URL); jsonl:<dir> uses a local directory store")
    ap.add_argument("-k", "--keep-going", action="store_true",
                    help="report failed commands and continue with the next one")
    ap.add_argument("--explain", action="store_true",
                    help="print tokens, syntax tree and command instead of executing")
    ap.add_argument("command", metavar="COMMAND",
                    help="command text, e.g. 'db.users.find({})', or - to read commands from stdin")
    return ap


def open_store(url: str, dbname: str) -> Store:
    if url.startswith(JSONL_SCHEME):
        data_dir = url[len(JSONL_SCHEME):] or "data"
        logger.debug("Using local store in %s, database %s", data_dir, dbname)
        return JsonlStore(data_dir=data_dir, dbname=dbname)
    return MongoStore.connect(url, dbname)


def exit_code_for(error: BaseException) -> int:
    if isinstance(error, CommandSyntaxError):
        return EXIT_SYNTAX
    if isinstance(error, TranslationError):
        return EXIT_TRANSLATION
    if isinstance(error, ExecutionError):
        return EXIT_EXECUTION
    if isinstance(error, OutputError):
        return EXIT_OUTPUT
    return EXIT_FAILURE


def report_error(error: MungError, err: TextIO) -> None:
    """Compiler-style diagnostic: message, then the source line with a caret under the column."""
    where = f"command {error.command_index}: " if error.command_index else ""
    kind = {
        EXIT_SYNTAX: "syntax error",
        EXIT_TRANSLATION: "invalid command",
        EXIT_EXECUTION: "execution failed",
    }.get(exit_code_for(error), "error")
    print(f"mung: {kind}: {where}{error}", file=err)
    column = getattr(error, "column", 0)
    if error.line_text and column:
        print(f"  {error.line_text}", file=err)
        print(f"  {pointer_for(column)}", file=err)


def input_lines(command: str, stdin: Optional[TextIO]) -> Iterable[str]:
    if command == "-":
        stream = stdin if stdin is not None else sys.stdin
        # readline keeps reading one line at a time, even on a pipe
        return iter(stream.readline, "")
    return io.StringIO(command)


def explain(text: str, out: BinaryIO) -> int:
    result = ShellCompiler().compile(text)
    out.write((json.dumps(result, ensure_ascii=False, indent=2, default=str) + "\n").encode("utf-8"))
    out.flush()
    if result["success"]:
        return EXIT_OK
    return EXIT_SYNTAX if result["error_type"] == "SYNTAX_ERROR" else EXIT_TRANSLATION


def run(store: Store, lines: Iterable[str], writer: OutputWriter, err: TextIO,
        keep_going: bool = False) -> int:
    """Read, execute and write commands one at a time. Returns the exit code of the first failure."""
    executor = Executor(store)
    status = EXIT_OK
    for stmt in CommandStreamReader(lines, keep_going=keep_going):
        if not stmt.ok:
            report_error(stmt.error, err)
            status = status or exit_code_for(stmt.error)
            continue
        result = executor.execute(stmt.command)
        try:
            for value in result:
                writer.write(value)
        except ExecutionError as e:
            e.command_index = stmt.index
            report_error(e, err)
            status = status or EXIT_EXECUTION
            if not keep_going:
                return status
        except OutputError as e:
            # the consumer is gone, nothing left to do
            logger.debug("Output closed during command %d: %s", stmt.index, e.cause)
            return status or EXIT_OUTPUT
        finally:
            result.close()
    return status


def main(argv: Optional[List[str]] = None, stdin: Optional[TextIO] = None,
         stdout: Optional[BinaryIO] = None, stderr: Optional[TextIO] = None) -> int:
    args = build_parser().parse_args(argv)
    err = stderr if stderr is not None else sys.stderr
    out = stdout if stdout is not None else sys.stdout.buffer
    setup_logging(args.verbose, stream=err)

    if args.explain:
        text = "".join(input_lines(args.command, stdin))
        return explain(text, out)

    try:
        store = open_store(args.url, args.dbname)
    except (PyMongoError, OSError) as e:
        logger.error("Cannot open store: %s", e)
        return EXIT_FAILURE
    try:
        return run(store, input_lines(args.command, stdin), OutputWriter(out, compact=args.compact),
                   err, keep_going=args.keep_going)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
