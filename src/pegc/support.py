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

"""I/O abstractions for the command line tool, and test helpers for it."""

import io
import os
import shutil
import subprocess
import sys
import tempfile
from typing import Callable, Dict, List, Optional, Union
import unittest


class Host:
    def __init__(self):
        self.stdin = sys.stdin
        self.stdout = sys.stdout
        self.stderr = sys.stderr

    def chdir(self, *comps):
        return os.chdir(self.join(*comps))

    def exists(self, path):
        return os.path.exists(path)

    def getcwd(self):
        return os.getcwd()

    def join(self, *comps):
        return os.path.join(*comps)

    def mkdtemp(self):
        return tempfile.mkdtemp()

    def print(self, *args, end='\n', file=None, flush=True):
        file = file or self.stdout
        print(*args, end=end, file=file, flush=flush)

    def rmtree(self, path):
        shutil.rmtree(path)

    def splitext(self, path):
        return os.path.splitext(path)

    def read_text_file(self, path):
        with open(path, encoding='utf-8') as f:
            return f.read()

    def write_text_file(self, path, contents):
        with open(path, 'w', encoding='utf-8') as f:
            f.write(contents)


class FakeHost:
    """An in-memory Host; files live in `files`, keyed by absolute path."""

    def __init__(self):
        self.stderr = io.StringIO()
        self.stdin = io.StringIO()
        self.stdout = io.StringIO()
        self.files: Dict[str, Optional[str]] = {}
        self.written_files: Dict[str, Optional[str]] = {}
        self.dirs = set()
        self.current_tmpno = 0
        self.cwd = '/tmp'

    def abspath(self, *comps):
        relpath = self.join(*comps)
        if relpath.startswith('/'):
            return relpath
        return self.join(self.cwd, relpath)

    def chdir(self, *comps):
        path = self.join(*comps)
        if not path.startswith('/'):
            path = self.join(self.cwd, path)
        self.cwd = path

    def exists(self, path):
        return self.files.get(self.abspath(path)) is not None

    def getcwd(self):
        return self.cwd

    def join(self, *comps):
        p = ''
        for c in comps:
            if c in ('', '.'):
                continue
            if c.startswith('/'):
                p = c
            elif p:
                p += '/' + c
            else:
                p = c
        return p.replace('/./', '/')

    def mkdtemp(self):
        path = f'/__im_tmp/tmp_{self.current_tmpno}'
        self.current_tmpno += 1
        self.dirs.add(path)
        return path

    def print(self, *args, end='\n', file=None, flush=True):
        file = file or self.stdout
        print(*args, end=end, file=file, flush=flush)

    def rmtree(self, path):
        path = self.abspath(path)
        for f in self.files:
            if f.startswith(path + '/'):
                self.files[f] = None
                self.written_files[f] = None
        self.dirs.discard(path)

    def splitext(self, path):
        return os.path.splitext(path)

    def read_text_file(self, path):
        contents = self.files.get(self.abspath(path))
        if contents is None:
            raise FileNotFoundError(path)
        return contents

    def write_text_file(self, path, contents):
        full_path = self.abspath(path)
        self.files[full_path] = contents
        self.written_files[full_path] = contents


AnyHost = Union[Host, FakeHost]


class _BaseTestCase(unittest.TestCase):
    maxDiff: Optional[int] = None
    host_fn: Optional[Callable[[], AnyHost]] = None

    def call(self, host, args, stdin):
        raise NotImplementedError

    # pylint: disable=too-many-positional-arguments
    def check(
        self, args, stdin=None, files=None, returncode=0, out=None, err=None
    ):
        """Runs the tool in a scratch directory and checks the results.

        Returns (returncode, stdout, stderr, written files), where the
        written files are keyed by path relative to the scratch directory.
        """
        self.assertIsNotNone(self.host_fn, 'self.host_fn is not defined')
        h = self.host_fn()  # pylint: disable=not-callable
        orig_wd = h.getcwd()
        tmpdir = None

        try:
            tmpdir = h.mkdtemp()
            h.chdir(tmpdir)
            for path, contents in (files or {}).items():
                h.write_text_file(path, contents)

            actual_ret, actual_out, actual_err = self.call(h, args, stdin)
            if returncode is not None:
                self.assertEqual(returncode, actual_ret)
            if out is not None:
                self.assertMultiLineEqual(out, actual_out)
            if err is not None:
                self.assertMultiLineEqual(err, actual_err)
            return actual_ret, actual_out, actual_err, self._written(h, tmpdir)
        finally:
            if tmpdir:
                h.rmtree(tmpdir)
                h.chdir(orig_wd)

    # pylint: enable=too-many-positional-arguments

    def _written(self, host, tmpdir) -> Dict[str, str]:
        if not isinstance(host, FakeHost):
            return {}
        prefix = tmpdir + '/'
        return {
            path[len(prefix) :]: contents
            for path, contents in host.written_files.items()
            if path.startswith(prefix) and contents is not None
        }


class InlineTestCase(_BaseTestCase):
    host_fn: Optional[Callable[[], AnyHost]] = FakeHost
    main: Optional[Callable[[Optional[List[str]], Optional[AnyHost]], int]] = (
        None
    )

    def call(self, host, args, stdin):
        self.assertIsNotNone(self.__class__.main, '__class__.main is not set')
        if stdin:
            host.stdin.write(stdin)
            host.stdin.seek(0)

        try:
            # pylint: disable=not-callable
            actual_ret = self.__class__.main(args, host)
        except SystemExit as e:
            actual_ret = e.code

        return actual_ret, host.stdout.getvalue(), host.stderr.getvalue()


class ModuleTestCase(_BaseTestCase):
    host_fn = Host
    module: Optional[str] = None

    def call(self, host, args, stdin):
        del host
        self.assertIsNotNone(self.module, 'self.module is not set')
        with subprocess.Popen(
            [sys.executable, '-m', self.module] + args,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            encoding='utf-8',
        ) as proc:
            actual_out, actual_err = proc.communicate(input=stdin)
            actual_ret = proc.returncode
        return actual_ret, actual_out, actual_err
