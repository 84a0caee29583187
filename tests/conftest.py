import subprocess
from collections import deque

import pytest


class ScriptedPrompter:
    """Answers prompts from pre-recorded lists and records what was shown."""

    def __init__(self, answers=(), passwords=(), confirms=(), choices=()):
        self.answers = deque(answers)
        self.passwords = deque(passwords)
        self.confirms = deque(confirms)
        self.choices = deque(choices)
        self.asked = []
        self.confirm_prompts = []
        self.notices = []
        self.shown = []

    def ask(self, title, prompt, default=""):
        self.asked.append((title, prompt, default))
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {prompt}")
        answer = self.answers.popleft()
        return answer if answer is not None else default

    def ask_password(self, title, prompt):
        self.asked.append((title, prompt, ""))
        if not self.passwords:
            raise AssertionError(f"Unexpected password prompt: {prompt}")
        return self.passwords.popleft()

    def confirm(self, prompt):
        self.confirm_prompts.append(prompt)
        if not self.confirms:
            raise AssertionError(f"Unexpected confirmation: {prompt}")
        return self.confirms.popleft()

    def choose(self, title, prompt, options):
        if not self.choices:
            raise AssertionError(f"Unexpected menu: {title}")
        return self.choices.popleft()

    def notice(self, text, style="cyan"):
        self.notices.append(text)

    def show(self, title, body, ok=True):
        self.shown.append((title, body, ok))


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None

    def error(self, *_args, **_kwargs):
        return None


class FakeDocker:
    """Stands in for ``run_cmd``; routes on a substring of the joined command."""

    def __init__(self, routes=None):
        self.routes = list(routes or [])
        self.calls = []

    def add(self, fragment, returncode=0, stdout="", stderr=""):
        self.routes.append((fragment, returncode, stdout, stderr))

    def __call__(self, cmd, check=True, capture_output=False, **kwargs):
        self.calls.append((cmd, kwargs))
        joined = " ".join(cmd)
        for fragment, returncode, stdout, stderr in self.routes:
            if fragment in joined:
                return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="no route")

    def commands(self):
        return [" ".join(cmd) for cmd, _ in self.calls]


@pytest.fixture
def scripted_prompter():
    return ScriptedPrompter


@pytest.fixture
def logger():
    return DummyLogger()


@pytest.fixture
def fake_docker():
    return FakeDocker()
