# Copyright 2024 Google Inc. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Command line front end: compiles a grammar file into a parser module."""

import argparse
import importlib
import json
import logging
import sys

from pegc import api
from pegc import compiler
from pegc import parser as m_parser
from pegc import support
from pegc.grammar_error import GrammarError
from pegc.version import __version__


def main(argv=None, host=None):
    host = host or support.Host()

    try:
        args, err = _parse_args(host, argv)
        if err is not None:
            return err

        if args.verbose:
            logging.basicConfig(level=logging.DEBUG, stream=host.stderr)

        grammar, err = _read_grammar(host, args)
        if err:
            host.print(err, file=host.stderr)
            return 1

        path = '<stdin>' if args.grammar == '-' else args.grammar
        try:
            if args.ast:
                ast = m_parser.parse(grammar)
                contents = json.dumps(ast.to_json(), indent=2) + '\n'
            else:
                options = compiler.options_from_args(args)
                options['plugins'] = [
                    importlib.import_module(name) for name in args.plugins
                ]
                contents = api.generate(grammar, options)
        except (GrammarError, m_parser.SyntaxError) as exc:
            host.print(_format_error(path, exc), file=host.stderr)
            return 1
        except (ImportError, ValueError) as exc:
            host.print(f'Error: {exc}', file=host.stderr)
            return 1

        _write(host, args, contents)
        return 0
    except KeyboardInterrupt:  # pragma: no cover
        host.print('Interrupted, exiting.', file=host.stderr)
        return 130  # SIGINT


def _parse_args(host, argv):
    ap = argparse.ArgumentParser(prog='pegc')
    compiler.add_arguments(ap)
    ap.add_argument(
        '--ast',
        action='store_true',
        help='dump the parsed AST of the grammar as JSON',
    )
    ap.add_argument(
        '-o', '--output', metavar='path', help='path to write output to'
    )
    ap.add_argument(
        '--plugin',
        action='append',
        dest='plugins',
        metavar='module',
        default=[],
        help='module with a use(config, options) function to apply',
    )
    ap.add_argument(
        '-v',
        '--verbose',
        action='store_true',
        help='log what the compiler is doing',
    )
    ap.add_argument(
        '-V',
        '--version',
        action='store_true',
        help=f'print current version ({__version__})',
    )
    ap.add_argument(
        'grammar', nargs='?', help='grammar file to compile ("-" for stdin)'
    )

    args = ap.parse_args(argv)

    if args.version:
        host.print(__version__)
        return None, 0

    if not args.grammar:
        host.print('You must specify a grammar.', file=host.stderr)
        return None, 2

    return args, None


def _read_grammar(host, args):
    if args.grammar == '-':
        return host.stdin.read(), None
    if not host.exists(args.grammar):
        return None, f'Error: no such file: "{args.grammar}"'
    return host.read_text_file(args.grammar), None


def _format_error(path, exc):
    if exc.location is None:
        return f'{path}: {exc}'
    start = exc.location.start
    return f'{path}:{start.line}:{start.column}: {exc}'


def _write(host, args, contents):
    if args.output and args.output != '-':
        host.write_text_file(args.output, contents)
    elif args.output == '-' or args.ast or args.grammar == '-':
        host.print(contents, end='')
    else:
        path = host.splitext(args.grammar)[0] + '.py'
        host.write_text_file(path, contents)


if __name__ == '__main__':  # pragma: no cover
    sys.exit(main())
