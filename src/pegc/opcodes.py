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

"""The instruction set of the parser stack machine.

Arguments follow their opcode inline in the bytecode. Conditional
instructions are followed by the lengths of their then and else
blocks, then the blocks themselves; WHILE_NOT_ERROR is followed by the
length of its body and the body.
"""

import enum


class Op(enum.IntEnum):
    # Stack manipulation.
    PUSH_EMPTY_STRING = 0
    PUSH_UNDEFINED = 1
    PUSH_NULL = 2
    PUSH_FAILED = 3
    PUSH_EMPTY_ARRAY = 4
    PUSH_CURR_POS = 5
    POP = 6
    POP_CURR_POS = 7
    POP_N = 8  # POP_N n
    NIP = 9
    APPEND = 10
    WRAP = 11  # WRAP n
    TEXT = 12

    # Conditions and loops.
    IF = 13  # IF t, f
    IF_ERROR = 14  # IF_ERROR t, f
    IF_NOT_ERROR = 15  # IF_NOT_ERROR t, f
    WHILE_NOT_ERROR = 16  # WHILE_NOT_ERROR b

    # Matching.
    MATCH_ANY = 17  # MATCH_ANY t, f
    MATCH_STRING = 18  # MATCH_STRING s, t, f
    MATCH_STRING_IC = 19  # MATCH_STRING_IC s, t, f
    MATCH_CLASS = 20  # MATCH_CLASS c, t, f
    ACCEPT_N = 21  # ACCEPT_N n
    ACCEPT_STRING = 22  # ACCEPT_STRING s
    FAIL = 23  # FAIL e

    # Calls.
    LOAD_SAVED_POS = 24  # LOAD_SAVED_POS p
    UPDATE_SAVED_POS = 25
    CALL = 26  # CALL f, n, pc, p1, p2, ..., pN

    # Rules.
    RULE = 27  # RULE r

    # Failure reporting.
    SILENT_FAILS_ON = 28
    SILENT_FAILS_OFF = 29
