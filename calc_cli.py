import argparse
import logging
import sys

from calc import EvalError, evaluate_line, format_error

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = "calc> "
LOG_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]


def read_lines(stdin, stdout, prompt=""):
    while True:
        if prompt:
            stdout.write(prompt)
            stdout.flush()
        line = stdin.readline()
        if not line:
            if prompt:
                stdout.write("\n")
            return
        yield line.rstrip("\r\n")


def evaluate(line, stdout, stderr, strict=False):
    try:
        result = evaluate_line(line, strict=strict)
    except EvalError as e:
        logger.info("rejected %r: %s", line, e)
        print("error: " + format_error(line, e), file=stderr)
        return False
    print(result, file=stdout)
    return True


def repl(stdin, stdout, stderr, prompt="", strict=False):
    """Render each non-blank line of ``stdin`` until end of input.

    Returns the number of lines that could not be rendered.
    """
    failures = 0
    for line in read_lines(stdin, stdout, prompt):
        if not line.strip():
            continue
        if not evaluate(line, stdout, stderr, strict):
            failures += 1
    return failures


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="calc",
        description="Render arithmetic expressions in fully-parenthesized prefix notation.",
    )
    parser.add_argument(
        "expressions",
        nargs="*",
        metavar="EXPR",
        help="expressions to render; lines are read from stdin when none are given",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="reject input left over after a complete expression",
    )
    parser.add_argument(
        "--prompt",
        default=DEFAULT_PROMPT,
        help="prompt shown when reading from a terminal (default: %(default)r)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="log more; repeat for debug output",
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=LOG_LEVELS[min(args.verbose, len(LOG_LEVELS) - 1)],
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.expressions:
        results = [
            evaluate(expr, sys.stdout, sys.stderr, args.strict)
            for expr in args.expressions
        ]
        return 0 if all(results) else 1

    prompt = args.prompt if sys.stdin.isatty() else ""
    try:
        failures = repl(sys.stdin, sys.stdout, sys.stderr, prompt, args.strict)
    except KeyboardInterrupt:
        print(file=sys.stderr)
        return 130
    logger.info("session ended with %d failed line(s)", failures)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
