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

from typing import Any, Optional


class GrammarError(Exception):
    """Raised when a grammar (or the options used to compile it) is
    invalid.

    `location` points at the offending construct in the grammar text
    when one is known.
    """

    name = 'GrammarError'

    def __init__(self, message: str, location: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.location = location

    def __str__(self):
        return self.message
