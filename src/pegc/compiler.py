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

"""Runs the compiler passes over a grammar AST."""

import argparse
import builtins
import inspect
import json
import logging
import types
from typing import Any, Callable, Dict, List, Optional, Union

from pegc import analysis
from pegc import bytecode
from pegc import checks
from pegc import custom_dicts
from pegc import python_generator
from pegc import transforms
from pegc import visitor
from pegc.grammar_error import GrammarError


logger = logging.getLogger(__name__)


FORMATS = ('bare', 'module')
JAVASCRIPT_FORMATS = ('amd', 'commonjs', 'es', 'globals', 'umd')
OPTIMIZATIONS = ('speed', 'size')
OUTPUTS = ('parser', 'source')


PASSES: Dict[str, Dict[str, Callable[..., None]]] = {
    'check': {
        'report_undefined_rules': checks.report_undefined_rules,
        'report_duplicate_rules': checks.report_duplicate_rules,
        'report_duplicate_labels': checks.report_duplicate_labels,
        'report_infinite_recursion': checks.report_infinite_recursion,
        'report_infinite_repetition': checks.report_infinite_repetition,
    },
    'transform': {
        'remove_proxy_rules': transforms.remove_proxy_rules,
    },
    'generate': {
        'calc_report_failures': analysis.calc_report_failures,
        'inference_match_result': analysis.inference_match_result,
        'generate_bytecode': bytecode.generate_bytecode,
        'generate_python': python_generator.generate_python,
    },
}


PassMap = Dict[str, List[Callable[..., None]]]


def convert_passes(stages) -> PassMap:
    """Turns {stage: {name: pass}} into {stage: [pass, ...]}."""
    converted = {}
    for stage, passes in stages.items():
        if isinstance(passes, dict):
            converted[stage] = list(passes.values())
        else:
            converted[stage] = list(passes)
    return converted


class CompilerOptions(custom_dicts.AttrDict):
    def __init__(self, *args, **kwargs):
        self.allowed_start_rules = None
        self.cache = False
        self.dependencies = {}
        self.export_var = None
        self.format = 'bare'
        self.header = None
        self.optimize = 'speed'
        self.output = 'parser'
        self.trace = False
        super().__init__(*args, **kwargs)


def normalize_options(ast, options: Optional[Dict[str, Any]]) -> CompilerOptions:
    """Fills in defaults and rejects values the passes can't handle.

    Keys that aren't compiler options are kept, so that passes added by
    plugins can read their own settings.
    """
    options = CompilerOptions(options or {})

    if not ast.rules:
        raise GrammarError('The grammar must define at least one rule.')
    if options.allowed_start_rules is None:
        options.allowed_start_rules = [ast.rules[0].name]
    elif isinstance(options.allowed_start_rules, str):
        options.allowed_start_rules = [options.allowed_start_rules]
    else:
        options.allowed_start_rules = list(options.allowed_start_rules)
    if not options.allowed_start_rules:
        raise GrammarError('At least one start rule must be allowed.')
    for rule_name in options.allowed_start_rules:
        if not ast.find_rule(rule_name):
            raise GrammarError(f'Start rule "{rule_name}" is not defined.')

    if options.format in JAVASCRIPT_FORMATS:
        raise GrammarError(
            f'The JavaScript module format "{options.format}" is not '
            'supported; use "bare" or "module".'
        )
    if options.format not in FORMATS:
        raise GrammarError(f'Invalid format: "{options.format}".')
    if options.optimize not in OPTIMIZATIONS:
        raise GrammarError(f'Invalid optimization: "{options.optimize}".')
    if options.output not in OUTPUTS:
        raise GrammarError(f'Invalid output: "{options.output}".')

    options.dependencies = dict(options.dependencies or {})
    if options.format == 'bare':
        if options.dependencies:
            raise GrammarError(
                'Dependencies are not supported in format "bare".'
            )
        if options.export_var:
            raise GrammarError(
                'An export variable is not supported in format "bare".'
            )
    for name, path in options.dependencies.items():
        if not name.isidentifier() or not all(
            part.isidentifier() for part in path.split('.')
        ):
            raise GrammarError(f'Invalid dependency: "{name}:{path}".')
    if options.export_var is not None and not options.export_var.isidentifier():
        raise GrammarError(f'Invalid export variable: "{options.export_var}".')

    if options.header is not None and not isinstance(
        options.header, (str, list, tuple)
    ):
        raise GrammarError('The header must be a string or a list of strings.')
    return options


def _run_pass(pass_fn: Callable[..., None], ast, options: CompilerOptions):
    params = inspect.signature(pass_fn).parameters
    if len(params) > 1:
        pass_fn(ast, options)
    else:
        pass_fn(ast)


def load_parser(code: str, name: str = 'parser') -> types.ModuleType:
    """Evaluates generated parser source and returns it as a module."""
    module = types.ModuleType(name)
    exec(  # pylint: disable=exec-used
        builtins.compile(code, f'<pegc {name}>', 'exec'), module.__dict__
    )
    return module


# pylint: disable=redefined-builtin
def compile(
    ast,
    passes: Optional[Union[PassMap, Dict[str, Dict[str, Callable]]]] = None,
    options: Optional[Dict[str, Any]] = None,
) -> Union[str, types.ModuleType]:
    """Runs every pass of every stage over `ast`, in order.

    Returns the generated source when `options['output']` is 'source',
    and the loaded parser module (with `parse` and `SyntaxError`) when
    it is 'parser'. Raises GrammarError on the first problem found.
    """
    options = normalize_options(ast, options)
    stages = convert_passes(PASSES if passes is None else passes)

    for stage, stage_passes in stages.items():
        for pass_fn in stage_passes:
            logger.debug(
                '%s: running %s',
                stage,
                getattr(pass_fn, '__name__', repr(pass_fn)),
            )
            _run_pass(pass_fn, ast, options)

    if options.output == 'source':
        return ast.code
    try:
        return load_parser(ast.code)
    except SyntaxError as exc:
        raise GrammarError(
            f'Code block does not compile: {exc.msg}.',
            _code_location(ast, exc.text),
        ) from exc


def _code_location(ast, text: Optional[str]):
    """Returns the location of the first code block containing `text`."""
    text = (text or '').strip()
    found = []

    def find_code(node):
        if text and text in node.code:
            found.append(node.location)

    def find_action(node):
        find_code(node)
        find(node.expression)

    find = visitor.build(
        {
            'initializer': find_code,
            'action': find_action,
            'semantic_and': find_code,
            'semantic_not': find_code,
        }
    )
    find(ast)
    return found[0] if found else None


# pylint: enable=redefined-builtin


def add_arguments(parser: argparse.ArgumentParser):
    default = CompilerOptions()
    parser.add_argument(
        '--allowed-start-rules',
        action='append',
        metavar='RULE',
        help=(
            'rule the generated parser may start from (may be given more '
            'than once; comma-separated lists work too; defaults to the '
            'first rule)'
        ),
    )
    parser.add_argument(
        '--cache',
        action=argparse.BooleanOptionalAction,
        default=default.cache,
        help='make the parser cache results (off by default)',
    )
    parser.add_argument(
        '-d',
        '--dependency',
        action='append',
        dest='dependencies',
        metavar='NAME:MODULE',
        help='import MODULE as NAME in the generated parser',
    )
    parser.add_argument(
        '-e',
        '--export-var',
        action='store',
        default=default.export_var,
        help='name of a variable the parser is also exported as',
    )
    parser.add_argument(
        '--format',
        action='store',
        choices=FORMATS,
        default='module',
        help='format of the generated parser (default is module)',
    )
    parser.add_argument(
        '-O',
        '--optimize',
        action='store',
        choices=OPTIMIZATIONS,
        default=default.optimize,
        help=(
            'optimize the generated parser for parsing speed or code size '
            f'(default is {default.optimize})'
        ),
    )
    parser.add_argument(
        '--trace',
        action=argparse.BooleanOptionalAction,
        default=default.trace,
        help='enable tracing in the generated parser (off by default)',
    )
    parser.add_argument(
        '--extra-options',
        action='append',
        metavar='JSON',
        help='additional options (as a JSON object) to pass to the compiler',
    )


def options_from_args(args: argparse.Namespace) -> CompilerOptions:
    """Returns the compiler options given on the command line.

    Raises ValueError if an option value can't be parsed.
    """
    d = CompilerOptions(
        cache=args.cache,
        export_var=args.export_var,
        format=args.format,
        optimize=args.optimize,
        output='source',
        trace=args.trace,
    )
    if args.allowed_start_rules:
        d.allowed_start_rules = [
            name.strip()
            for value in args.allowed_start_rules
            for name in value.split(',')
            if name.strip()
        ]
    if args.dependencies:
        for dep in args.dependencies:
            name, sep, path = dep.partition(':')
            if not sep:
                raise ValueError(
                    f'Dependency "{dep}" is not of the form NAME:MODULE.'
                )
            d.dependencies[name] = path
    for extra in args.extra_options or []:
        value = json.loads(extra)
        if not isinstance(value, dict):
            raise ValueError('--extra-options must be a JSON object.')
        d.update(value)
    return d
