import io

import pytest

import treelox


class Result:
    def __init__(self, out, err, status):
        self.out = out
        self.err = err
        self.status = status

    @property
    def lines(self):
        return self.out.splitlines()


@pytest.fixture
def run_lox():
    """Run a Lox program through the full pipeline with captured streams."""
    def run(source, interpreter=None):
        err = io.StringIO()
        out = io.StringIO()
        if interpreter is None:
            reporter = treelox.ErrorReporter(err)
            interpreter = treelox.Interpreter(reporter, out=out)
        else:
            reporter = interpreter.reporter
            reporter.stream = err
            interpreter.out = out
        status = treelox.run_source(source, interpreter, reporter)
        return Result(out.getvalue(), err.getvalue(), status)
    return run


@pytest.fixture
def errors():
    return io.StringIO()


@pytest.fixture
def reporter(errors):
    return treelox.ErrorReporter(errors)


@pytest.fixture
def parse(reporter):
    def parse(source):
        tokens = treelox.Scanner(source, reporter).scan_tokens()
        return treelox.Parser(tokens, reporter).parse()
    return parse


@pytest.fixture
def parse_expr(reporter):
    def parse_expr(source):
        tokens = treelox.Scanner(source, reporter).scan_tokens()
        return treelox.Parser(tokens, reporter).parse_expression()
    return parse_expr
