"""Nox sessions for the guild event tracker."""

import nox

nox.options.sessions = ["tests", "lint"]

PYTHON = "3.11"
SOURCES = ("event_tracker", "tests", "eventtrackerbot.py", "noxfile.py")
COVERAGE_ARGS = (
    "--cov=event_tracker",
    "--cov-report=term-missing",
    "--cov-report=html:htmlcov",
    "--cov-report=xml:coverage.xml",
)


@nox.session(python=["3.11", "3.12"])
def tests(session):
    """Run the event tracker test suite with coverage."""
    session.install("-e", ".[dev]")
    session.run("pytest", *COVERAGE_ARGS, "--cov-fail-under=80", "-v", *session.posargs)


@nox.session(python=PYTHON)
def lint(session):
    session.install("ruff>=0.1.0")
    session.run("ruff", "check", *SOURCES)
    session.run("ruff", "format", "--check", *SOURCES)


@nox.session(python=PYTHON)
def format_code(session):
    """Apply ruff formatting and autofixes."""
    session.install("ruff>=0.1.0")
    session.run("ruff", "format", *SOURCES)
    session.run("ruff", "check", "--fix", *SOURCES)


@nox.session(python=PYTHON)
def coverage_report(session):
    session.install("-e", ".[dev]")
    session.run("pytest", *COVERAGE_ARGS, "--cov-branch", "--tb=short")
    session.log("Coverage report written to htmlcov/")


@nox.session(python=PYTHON)
def test_single(session):
    """Run one test module or node id, e.g. tests/test_lottery.py::TestDailyDraw."""
    if not session.posargs:
        session.error("Pass a test file or node id")
    session.install("-e", ".[dev]")
    session.run("pytest", "-v", *session.posargs)
