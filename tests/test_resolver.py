import pytest

import treelox
from treelox import Resolver


@pytest.fixture
def resolve(parse, reporter):
    def resolve(source):
        statements = parse(source)
        return statements, Resolver(reporter).resolve(statements)
    return resolve


def test_global_references_get_no_entry(resolve):
    _, locals_ = resolve("var a = 1; print a; a = 2;")
    assert locals_ == {}


def test_distance_counts_scopes_skipped(resolve):
    statements, locals_ = resolve("{ var a = 1; { print a; } }")
    inner = statements[0].statements[1]
    expr = inner.statements[0].expression
    assert locals_[expr] == 1


def test_assignment_is_resolved(resolve):
    statements, locals_ = resolve("{ var a = 1; a = 2; }")
    assign = statements[0].statements[1].expression
    assert isinstance(assign, treelox.Assign)
    assert locals_[assign] == 0


def test_parameters_shadow_outer_variables(resolve):
    statements, locals_ = resolve("{ var x = 1; fun f(x) { return x; } }")
    fn = statements[0].statements[1]
    assert locals_[fn.body[0].value] == 0


def test_closure_reference_crosses_function_scope(resolve):
    statements, locals_ = resolve(
        "fun outer() { var i = 0; fun inner() { return i; } return inner; }"
    )
    inner = statements[0].body[1]
    assert locals_[inner.body[0].value] == 1


def test_this_resolves_one_scope_out_of_method(resolve):
    statements, locals_ = resolve("class A { m() { return this; } }")
    this = statements[0].methods[0].body[0].value
    assert isinstance(this, treelox.This)
    assert locals_[this] == 1


def test_super_sits_outside_this(resolve):
    statements, locals_ = resolve("class A {} class B < A { m() { return super.m(); } }")
    call = statements[1].methods[0].body[0].value
    assert isinstance(call.callee, treelox.Super)
    assert locals_[call.callee] == 2


def test_same_name_nodes_are_distinct_keys(resolve):
    statements, locals_ = resolve("{ var a = 1; print a; { print a; } }")
    outer = statements[0].statements[1].expression
    inner = statements[0].statements[2].statements[0].expression
    assert locals_[outer] == 0
    assert locals_[inner] == 1


@pytest.mark.parametrize("source, message", [
    ("{ var a = a; }", "[line 1] Error at 'a': Can't read local variable in its own initializer."),
    ("{ var a = 1; var a = 2; }", "[line 1] Error at 'a': Already a variable with this name in this scope."),
    ("return 1;", "[line 1] Error at 'return': Can't return from top-level code."),
    ("print this;", "[line 1] Error at 'this': Can't use 'this' outside of a class."),
    ("fun f() { return this; }", "[line 1] Error at 'this': Can't use 'this' outside of a class."),
    ("super.m();", "[line 1] Error at 'super': Can't use 'super' outside of a class."),
    ("class A { m() { super.m(); } }", "[line 1] Error at 'super': Can't use 'super' in a class with no superclass."),
    ("class A < A {}", "[line 1] Error at 'A': A class can't inherit from itself."),
])
def test_static_errors(resolve, errors, reporter, source, message):
    resolve(source)
    assert errors.getvalue().splitlines() == [message]
    assert reporter.had_error


def test_global_redeclaration_is_allowed(resolve, reporter):
    resolve("var a = 1; var a = 2;")
    assert not reporter.had_error


def test_shadowing_in_nested_scope_is_allowed(resolve, reporter):
    resolve("{ var a = 1; { var b = a; var a = 2; } }")
    assert not reporter.had_error


def test_shadowing_initializer_sees_its_own_declaration(resolve, reporter):
    # the inner initializer reads the inner, not-yet-defined `a`
    resolve("{ var a = 1; { var a = a; } }")
    assert reporter.had_error


def test_error_statements_are_skipped(resolve, reporter, errors):
    statements, locals_ = resolve("var = 1; { var a; print a; }")
    assert isinstance(statements[0], treelox.ErrorStmt)
    assert len(locals_) == 1


def test_resolvers_do_not_share_state(parse, reporter):
    first = parse("{ var a; print a; }")
    second = parse("{ var b; print b; }")
    table_one = Resolver(reporter).resolve(first)
    table_two = Resolver(reporter).resolve(second)
    assert len(table_one) == 1
    assert len(table_two) == 1
    assert table_one.keys().isdisjoint(table_two.keys())
