import io
import logging

import treelox


def write(tmp_path, source):
    path = tmp_path / "script.lox"
    path.write_text(source, encoding="utf-8")
    return str(path)


def test_run_file(tmp_path, capsys):
    path = write(tmp_path, 'var greeting = "hello"; print greeting + " world";')
    assert treelox.main([path]) == treelox.EX_OK
    assert capsys.readouterr().out == "hello world\n"


def test_runtime_error_exit_code(tmp_path, capsys):
    path = write(tmp_path, "print 1;\nprint -nil;")
    assert treelox.main([path]) == treelox.EX_SOFTWARE
    captured = capsys.readouterr()
    assert captured.out == "1\n"
    assert captured.err == "[line 2] Operand must be a number.\n"


def test_static_error_exit_code(tmp_path, capsys):
    path = write(tmp_path, "print 1")
    assert treelox.main([path]) == treelox.EX_DATAERR
    assert capsys.readouterr().err == "[line 1] Error at end: Expect ';' after value.\n"


def test_missing_file(tmp_path, capsys):
    assert treelox.main([str(tmp_path / "nope.lox")]) == treelox.EX_NOINPUT
    assert "Could not read" in capsys.readouterr().err


def test_print_ast(tmp_path, capsys):
    path = write(tmp_path, "print 4 + 5 * 2;")
    assert treelox.main(["--ast", path]) == treelox.EX_OK
    assert capsys.readouterr().out == "(print (+ 4 (* 5 2)))\n"


def test_print_ast_requires_file(capsys):
    assert treelox.main(["--ast"]) == treelox.EX_USAGE


def test_repl_keeps_state_and_survives_errors(capsys):
    stdin = io.StringIO("var a = 1;\n\nprint nope;\nprint a + 1;\nprint ;\nprint a;\n")
    treelox.repl(stdin)
    captured = capsys.readouterr()
    assert "> 2\n" in captured.out
    assert "> 1\n" in captured.out
    assert "[line 1] Undefined variable 'nope'." in captured.err
    assert "[line 1] Error at ';': Expect expression." in captured.err


def test_pipeline_logs_stages(caplog):
    caplog.set_level(logging.DEBUG, logger="treelox")
    reporter = treelox.ErrorReporter(io.StringIO())
    treelox.run_source("{ var a = 1; print a; }", treelox.Interpreter(reporter, out=io.StringIO()), reporter)
    assert "parsed 1 top-level statements" in caplog.text
    assert "resolved 1 local references" in caplog.text
