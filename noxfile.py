import nox

PYTHONS = ["3.10", "3.11", "3.12"]
SOURCES = ["src/tabular_crud", "tests"]

nox.options.sessions = ["lint", "type_check", "tests", "arch_check"]


@nox.session(python=PYTHONS)
def tests(session: nox.Session) -> None:
    """Unit and aiosqlite-backed integration tests, with coverage."""
    session.install("-e", ".[test]")
    session.run("pytest", "--ignore=tests/architecture", *session.posargs)


@nox.session(python=PYTHONS[-1])
def arch_check(session: nox.Session) -> None:
    """Layering rules between criteria, query, service and crud."""
    session.install("-e", ".[test]")
    session.run("pytest", "--no-cov", "tests/architecture", *session.posargs)


@nox.session(python=PYTHONS[-1])
def lint(session: nox.Session) -> None:
    session.install("ruff")
    session.run("ruff", "check", *SOURCES)
    session.run("ruff", "format", "--check", *SOURCES)


@nox.session(python=PYTHONS[-1], name="format")
def autoformat(session: nox.Session) -> None:
    """Apply ruff fixes and formatting in place."""
    session.install("ruff")
    session.run("ruff", "check", "--fix", *SOURCES)
    session.run("ruff", "format", *SOURCES)


@nox.session(python=PYTHONS[-1])
def type_check(session: nox.Session) -> None:
    """Strict mypy over the library package only."""
    session.install("-e", ".[postgres,sqlite]", "mypy")
    session.run("mypy", "src/tabular_crud")


@nox.session(python=PYTHONS[-1])
def dead_code(session: nox.Session) -> None:
    session.install("vulture")
    session.run("vulture", "--min-confidence", "80", *SOURCES)
