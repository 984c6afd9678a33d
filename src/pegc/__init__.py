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

from pegc.api import Plugin, generate
from pegc.compiler import (
    PASSES,
    CompilerOptions,
    compile,  # pylint: disable=redefined-builtin
    convert_passes,
)
from pegc.grammar_error import GrammarError
from pegc.version import __version__


__all__ = [
    '__version__',
    'CompilerOptions',
    'GrammarError',
    'PASSES',
    'Plugin',
    'compile',
    'convert_passes',
    'generate',
]
