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

import logging
import types
from typing import Any, Dict, Optional, Protocol, Union

from pegc import compiler
from pegc import parser as m_parser


logger = logging.getLogger(__name__)


class Plugin(Protocol):
    """Anything with a `use()` method (an object or a module)."""

    def use(self, config: Dict[str, Any], options: Dict[str, Any]) -> None:
        """Adjusts the build before the grammar is parsed.

        `config['parser']` is the object whose `parse(text, options)`
        turns grammar text into an AST, and `config['passes']` maps each
        stage name to its list of passes; plugins may replace either or
        edit them in place. `options` holds the remaining build options
        and may be edited too.
        """


def generate(
    grammar: str, options: Optional[Dict[str, Any]] = None
) -> Union[str, types.ModuleType]:
    """Generates a parser from grammar text.

    `options` takes everything `compiler.compile()` does, plus `plugins`
    (a list of Plugin objects) and `parser` (options passed to the
    grammar parser). Returns what `compile()` returns.

    Raises parser.SyntaxError if the grammar text can't be parsed and
    GrammarError if the grammar is invalid.
    """
    options = dict(options or {})
    plugins = options.pop('plugins', None) or []
    parser_options = options.pop('parser', None) or {}

    config: Dict[str, Any] = {
        'parser': m_parser,
        'passes': compiler.convert_passes(compiler.PASSES),
    }
    for plugin in plugins:
        logger.debug('using plugin %r', plugin)
        plugin.use(config, options)

    ast = config['parser'].parse(grammar, parser_options)
    return compiler.compile(ast, config['passes'], options)
