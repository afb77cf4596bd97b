from invoke import task


@task
def env(c):
    """
    Create/update the project virtual environment and install dependencies.
    """
    c.run("uv pip install -e '.[dev]'")


@task(pre=[env], help={"path": "Test file or directory to run"})
def test(c, path="tests"):
    """
    Run the test suite against an in-process fake Redis.
    """
    c.run(f"uv run pytest {path}", pty=True)


@task
def lint(c):
    """
    Check formatting and types.
    """
    c.run("black --check kvcache tests")
    c.run("isort --check-only kvcache tests")
    c.run("mypy kvcache")
