#!/usr/bin/env python3
"""
treelox: a tree-walking interpreter for Lox.

Pipeline:
- Scanner turns source text into tokens.
- Parser builds statements (recursive descent, statement-level error recovery).
- Resolver computes how many scopes out each local variable lives.
- Interpreter walks the statements, using those distances to find bindings.

The language has first-class functions with closures, and classes with
single inheritance, `this`, `super` and `init` constructors.

Example:
class Counter {
  init(start) { this.value = start; }
  inc() { this.value = this.value + 1; return this; }
}
var c = Counter(0);
print c.inc().inc().value; // 2
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional, List, Dict, Protocol
import enum
import math
import decimal
import argparse
import logging
import time
import sys

logger = logging.getLogger("treelox")
logger.addHandler(logging.NullHandler())

MAX_ARGS = 255

# ---------------------------
# Errors
# ---------------------------

class ErrorReporter:
    """Collects static and runtime diagnostics as `[line N] ...` lines.

    The host decides what to do with `had_error` / `had_runtime_error`
    (exit status, refusing to run); `reset()` is its job between REPL lines.
    """
    def __init__(self, stream=None):
        self.stream=stream
        self.had_error=False
        self.had_runtime_error=False

    def error(self, line:int, message:str):
        self.report(line, "", message)

    def error_at(self, token:'Token', message:str):
        if token.type==TokenType.EOF:
            self.report(token.line, " at end", message)
        else:
            self.report(token.line, f" at '{token.lexeme}'", message)

    def runtime_error(self, error:'LoxRuntimeError'):
        self._write(f"[line {error.token.line}] {error.message}")
        self.had_runtime_error=True

    def report(self, line:int, where:str, message:str):
        self._write(f"[line {line}] Error{where}: {message}")
        self.had_error=True

    def reset(self):
        self.had_error=False
        self.had_runtime_error=False

    def _write(self, text:str):
        print(text, file=self.stream if self.stream is not None else sys.stderr)

class LoxRuntimeError(Exception):
    def __init__(self, token:'Token', message:str):
        super().__init__(message)
        self.token=token
        self.message=message
    def __str__(self):
        return f"[line {self.token.line}] {self.message}"

# ---------------------------
# Lexer
# ---------------------------

class TokenType(enum.Enum):
    LEFT_PAREN="("
    RIGHT_PAREN=")"
    LEFT_BRACE="{"
    RIGHT_BRACE="}"
    COMMA=","
    DOT="."
    MINUS="-"
    PLUS="+"
    SEMICOLON=";"
    SLASH="/"
    STAR="*"
    QUESTION="?"
    COLON=":"

    BANG="!"
    BANG_EQUAL="!="
    EQUAL="="
    EQUAL_EQUAL="=="
    GREATER=">"
    GREATER_EQUAL=">="
    LESS="<"
    LESS_EQUAL="<="

    IDENTIFIER="IDENT"
    STRING="STRING"
    NUMBER="NUMBER"

    AND="and"
    CLASS="class"
    ELSE="else"
    FALSE="false"
    FOR="for"
    FUN="fun"
    IF="if"
    NIL="nil"
    OR="or"
    PRINT="print"
    RETURN="return"
    SUPER="super"
    THIS="this"
    TRUE="true"
    VAR="var"
    WHILE="while"

    EOF="EOF"

KEYWORDS = {t.value:t for t in [
    TokenType.AND, TokenType.CLASS, TokenType.ELSE, TokenType.FALSE, TokenType.FOR,
    TokenType.FUN, TokenType.IF, TokenType.NIL, TokenType.OR, TokenType.PRINT,
    TokenType.RETURN, TokenType.SUPER, TokenType.THIS, TokenType.TRUE, TokenType.VAR,
    TokenType.WHILE
]}

SINGLE_CHAR_TOKENS = {
    "(": TokenType.LEFT_PAREN, ")": TokenType.RIGHT_PAREN,
    "{": TokenType.LEFT_BRACE, "}": TokenType.RIGHT_BRACE,
    ",": TokenType.COMMA, ".": TokenType.DOT, "-": TokenType.MINUS,
    "+": TokenType.PLUS, ";": TokenType.SEMICOLON, "*": TokenType.STAR,
    "?": TokenType.QUESTION, ":": TokenType.COLON,
}

@dataclass(frozen=True)
class Token:
    type: TokenType
    lexeme: str
    literal: Any
    line: int

class Scanner:
    def __init__(self, source:str, reporter:ErrorReporter):
        self.source=source
        self.reporter=reporter
        self.tokens: List[Token]=[]
        self.start=0
        self.current=0
        self.line=1

    def scan_tokens(self)->List[Token]:
        while not self.is_at_end():
            self.start=self.current
            self.scan_token()
        self.tokens.append(Token(TokenType.EOF,"",None,self.line))
        return self.tokens

    def is_at_end(self)->bool:
        return self.current>=len(self.source)

    def advance(self)->str:
        ch=self.source[self.current]
        self.current+=1
        return ch

    def add_token(self, type_:TokenType, literal:Any=None):
        text=self.source[self.start:self.current]
        self.tokens.append(Token(type_, text, literal, self.line))

    def match(self, expected:str)->bool:
        if self.is_at_end(): return False
        if self.source[self.current]!=expected: return False
        self.current+=1
        return True

    def peek(self)->str:
        if self.is_at_end(): return "\0"
        return self.source[self.current]

    def peek_next(self)->str:
        if self.current+1>=len(self.source): return "\0"
        return self.source[self.current+1]

    def scan_token(self):
        c=self.advance()
        if c in SINGLE_CHAR_TOKENS:
            self.add_token(SINGLE_CHAR_TOKENS[c])
        elif c=="!":
            self.add_token(TokenType.BANG_EQUAL if self.match("=") else TokenType.BANG)
        elif c=="=":
            self.add_token(TokenType.EQUAL_EQUAL if self.match("=") else TokenType.EQUAL)
        elif c=="<":
            self.add_token(TokenType.LESS_EQUAL if self.match("=") else TokenType.LESS)
        elif c==">":
            self.add_token(TokenType.GREATER_EQUAL if self.match("=") else TokenType.GREATER)
        elif c=="/":
            if self.match("/"):
                while self.peek()!="\n" and not self.is_at_end():
                    self.advance()
            elif self.match("*"):
                self.block_comment()
            else:
                self.add_token(TokenType.SLASH)
        elif c in (" ", "\r", "\t"):
            return
        elif c=="\n":
            self.line+=1
        elif c=="\"":
            self.string()
        elif self.is_digit(c):
            self.number()
        elif self.is_alpha(c):
            self.identifier()
        else:
            self.reporter.error(self.line, "Unexpected character.")

    def block_comment(self):
        while not (self.peek()=="*" and self.peek_next()=="/") and not self.is_at_end():
            if self.peek()=="\n":
                self.line+=1
            self.advance()
        if self.is_at_end():
            self.reporter.error(self.line, "Unterminated multi-line comment.")
            return
        self.advance()
        self.advance()

    def string(self):
        while self.peek()!="\"" and not self.is_at_end():
            if self.peek()=="\n":
                self.line+=1
            self.advance()
        if self.is_at_end():
            self.reporter.error(self.line, "Unterminated string.")
            return
        self.advance() # closing "
        value=self.source[self.start+1:self.current-1]
        self.add_token(TokenType.STRING, value)

    def number(self):
        while self.is_digit(self.peek()):
            self.advance()
        if self.peek()=="." and self.is_digit(self.peek_next()):
            self.advance()
            while self.is_digit(self.peek()):
                self.advance()
        value=float(self.source[self.start:self.current])
        self.add_token(TokenType.NUMBER, value)

    def identifier(self):
        while self.is_alpha(self.peek()) or self.is_digit(self.peek()):
            self.advance()
        text=self.source[self.start:self.current]
        type_=KEYWORDS.get(text, TokenType.IDENTIFIER)
        self.add_token(type_)

    @staticmethod
    def is_digit(c:str)->bool:
        return "0"<=c<="9"

    @staticmethod
    def is_alpha(c:str)->bool:
        return ("a"<=c<="z") or ("A"<=c<="Z") or c=="_"

# ---------------------------
# AST
# ---------------------------
# Nodes compare and hash by identity: the resolver keys its table on the
# node object itself, so two textually equal `a` references stay distinct.

class Expr: pass
class Stmt: pass

def node(cls):
    return dataclass(frozen=True, eq=False)(cls)

@node
class Literal(Expr):
    value: Any

@node
class Grouping(Expr):
    expression: Expr

@node
class Unary(Expr):
    operator: Token
    right: Expr

@node
class Binary(Expr):
    left: Expr
    operator: Token
    right: Expr

@node
class Logical(Expr):
    left: Expr
    operator: Token
    right: Expr

@node
class Ternary(Expr):
    condition: Expr
    then_branch: Expr
    else_branch: Expr

@node
class Variable(Expr):
    name: Token

@node
class Assign(Expr):
    name: Token
    value: Expr

@node
class Call(Expr):
    callee: Expr
    paren: Token
    arguments: List[Expr]

@node
class Get(Expr):
    object: Expr
    name: Token

@node
class SetExpr(Expr):
    object: Expr
    name: Token
    value: Expr

@node
class This(Expr):
    keyword: Token

@node
class Super(Expr):
    keyword: Token
    method: Token

@node
class ExpressionStmt(Stmt):
    expression: Expr

@node
class PrintStmt(Stmt):
    expression: Expr

@node
class VarStmt(Stmt):
    name: Token
    initializer: Optional[Expr]

@node
class BlockStmt(Stmt):
    statements: List[Stmt]

@node
class IfStmt(Stmt):
    condition: Expr
    then_branch: Stmt
    else_branch: Optional[Stmt]

@node
class WhileStmt(Stmt):
    condition: Expr
    body: Stmt

@node
class FunctionStmt(Stmt):
    name: Token
    params: List[Token]
    body: List[Stmt]

@node
class ReturnStmt(Stmt):
    keyword: Token
    value: Optional[Expr]

@node
class ClassStmt(Stmt):
    name: Token
    superclass: Optional[Variable]
    methods: List[FunctionStmt]

@node
class ErrorStmt(Stmt):
    """Stands in for a statement the parser recovered from. Does nothing."""
    token: Token

# ---------------------------
# Printers
# ---------------------------

def format_number(value:float)->str:
    """Java-style double text with a trailing `.0` dropped.

    Plain decimals for 1e-3 <= |v| < 1e7, otherwise `d.dddE<exp>` using the
    shortest digits that round-trip: `1.0E22`, `1.2345678901234568E17`.
    """
    value=float(value)
    if math.isnan(value): return "NaN"
    if math.isinf(value): return "Infinity" if value>0 else "-Infinity"
    if value==0 or 1e-3<=abs(value)<1e7:
        text=repr(value)
    else:
        sign, digits, exponent=decimal.Decimal(repr(value)).as_tuple()
        power=len(digits)+exponent-1
        digits="".join(map(str, digits)).rstrip("0") or "0"
        text=f"{'-' if sign else ''}{digits[0]}.{digits[1:] or '0'}E{power}"
    if text.endswith(".0"):
        text=text[:-2]
    return text

class AstPrinter:
    """Renders nodes in parenthesized prefix form, e.g. `(+ 4 (* 5 2))`."""

    def print(self, node_:Any)->str:
        if isinstance(node_, Stmt):
            return self.print_stmt(node_)
        return self.print_expr(node_)

    def print_program(self, statements:List[Stmt])->str:
        return "\n".join(self.print_stmt(s) for s in statements)

    def print_expr(self, expr:Expr)->str:
        if isinstance(expr, Literal):
            if expr.value is None: return "nil"
            if isinstance(expr.value, bool): return "true" if expr.value else "false"
            if isinstance(expr.value, str): return f"\"{expr.value}\""
            return format_number(expr.value)
        if isinstance(expr, Grouping):
            return self.parenthesize("group", expr.expression)
        if isinstance(expr, Unary):
            return self.parenthesize(expr.operator.lexeme, expr.right)
        if isinstance(expr, (Binary, Logical)):
            return self.parenthesize(expr.operator.lexeme, expr.left, expr.right)
        if isinstance(expr, Ternary):
            return self.parenthesize("?:", expr.condition, expr.then_branch, expr.else_branch)
        if isinstance(expr, Variable):
            return expr.name.lexeme
        if isinstance(expr, Assign):
            return self.parenthesize(f"= {expr.name.lexeme}", expr.value)
        if isinstance(expr, Call):
            return self.parenthesize("call", expr.callee, *expr.arguments)
        if isinstance(expr, Get):
            return self.parenthesize(f". {expr.name.lexeme}", expr.object)
        if isinstance(expr, SetExpr):
            return self.parenthesize(f"set {expr.name.lexeme}", expr.object, expr.value)
        if isinstance(expr, This):
            return "this"
        if isinstance(expr, Super):
            return f"(super {expr.method.lexeme})"
        raise TypeError(f"Unknown expression type: {expr!r}")

    def print_stmt(self, stmt:Stmt)->str:
        if isinstance(stmt, ExpressionStmt):
            return self.print_expr(stmt.expression)+";"
        if isinstance(stmt, PrintStmt):
            return self.parenthesize("print", stmt.expression)
        if isinstance(stmt, VarStmt):
            if stmt.initializer is None:
                return f"(var {stmt.name.lexeme})"
            return self.parenthesize(f"var {stmt.name.lexeme}", stmt.initializer)
        if isinstance(stmt, BlockStmt):
            return self.join("block", [self.print_stmt(s) for s in stmt.statements])
        if isinstance(stmt, IfStmt):
            parts=[self.print_expr(stmt.condition), self.print_stmt(stmt.then_branch)]
            if stmt.else_branch is not None:
                parts.append(self.print_stmt(stmt.else_branch))
            return self.join("if", parts)
        if isinstance(stmt, WhileStmt):
            return self.join("while", [self.print_expr(stmt.condition), self.print_stmt(stmt.body)])
        if isinstance(stmt, FunctionStmt):
            return self.print_function("fun", stmt)
        if isinstance(stmt, ReturnStmt):
            if stmt.value is None:
                return "(return)"
            return self.parenthesize("return", stmt.value)
        if isinstance(stmt, ClassStmt):
            head=f"class {stmt.name.lexeme}"
            if stmt.superclass is not None:
                head+=f" < {stmt.superclass.name.lexeme}"
            return self.join(head, [self.print_function("method", m) for m in stmt.methods])
        if isinstance(stmt, ErrorStmt):
            return "(error)"
        raise TypeError(f"Unknown statement type: {stmt!r}")

    def print_function(self, kind:str, fn:FunctionStmt)->str:
        params=self.join("params", [p.lexeme for p in fn.params])
        body=self.join("body", [self.print_stmt(s) for s in fn.body])
        return f"({kind} {fn.name.lexeme} {params} {body})"

    def parenthesize(self, name:str, *exprs:Expr)->str:
        return self.join(name, [self.print_expr(e) for e in exprs])

    @staticmethod
    def join(name:str, parts:List[str])->str:
        if not parts:
            return f"({name})"
        return f"({name} {' '.join(parts)})"

class RpnPrinter:
    """Reverse Polish rendering of operator expressions: `123 ~ "str" *`."""

    def print(self, expr:Expr)->str:
        if isinstance(expr, Literal):
            return AstPrinter().print_expr(expr)
        if isinstance(expr, Grouping):
            return self.print(expr.expression)
        if isinstance(expr, Unary):
            op="~" if expr.operator.type==TokenType.MINUS else expr.operator.lexeme
            return f"{self.print(expr.right)} {op}"
        if isinstance(expr, (Binary, Logical)):
            return f"{self.print(expr.left)} {self.print(expr.right)} {expr.operator.lexeme}"
        if isinstance(expr, Ternary):
            return f"{self.print(expr.condition)} {self.print(expr.then_branch)} {self.print(expr.else_branch)} ?:"
        if isinstance(expr, Variable):
            return expr.name.lexeme
        raise ValueError(f"No reverse Polish form for {type(expr).__name__}.")

# ---------------------------
# Parser
# ---------------------------

class ParseError(Exception):
    pass

SYNC_TOKENS = {
    TokenType.CLASS, TokenType.FUN, TokenType.VAR, TokenType.FOR,
    TokenType.IF, TokenType.WHILE, TokenType.PRINT, TokenType.RETURN,
}

class Parser:
    def __init__(self, tokens:List[Token], reporter:ErrorReporter):
        self.tokens=tokens
        self.reporter=reporter
        self.current=0

    def parse(self)->List[Stmt]:
        statements=[]
        while not self.is_at_end():
            statements.append(self.declaration())
        return statements

    def parse_expression(self)->Optional[Expr]:
        try:
            return self.expression()
        except ParseError:
            return None

    def declaration(self)->Stmt:
        start=self.peek()
        try:
            if self.match(TokenType.CLASS):
                return self.class_declaration()
            if self.match(TokenType.FUN):
                return self.function("function")
            if self.match(TokenType.VAR):
                return self.var_declaration()
            return self.statement()
        except ParseError:
            self.synchronize()
            return ErrorStmt(start)

    def class_declaration(self)->Stmt:
        name=self.consume(TokenType.IDENTIFIER, "Expect class name.")
        superclass=None
        if self.match(TokenType.LESS):
            self.consume(TokenType.IDENTIFIER, "Expect superclass name.")
            superclass=Variable(self.previous())
        self.consume(TokenType.LEFT_BRACE, "Expect '{' before class body.")
        methods=[]
        while not self.check(TokenType.RIGHT_BRACE) and not self.is_at_end():
            methods.append(self.function("method"))
        self.consume(TokenType.RIGHT_BRACE, "Expect '}' after class body.")
        return ClassStmt(name, superclass, methods)

    def function(self, kind:str)->FunctionStmt:
        name=self.consume(TokenType.IDENTIFIER, f"Expect {kind} name.")
        self.consume(TokenType.LEFT_PAREN, f"Expect '(' after {kind} name.")
        params=[]
        if not self.check(TokenType.RIGHT_PAREN):
            while True:
                if len(params)>=MAX_ARGS:
                    self.error(self.peek(), f"Can't have more than {MAX_ARGS} parameters.")
                params.append(self.consume(TokenType.IDENTIFIER, "Expect parameter name."))
                if not self.match(TokenType.COMMA):
                    break
        self.consume(TokenType.RIGHT_PAREN, "Expect ')' after parameters.")
        self.consume(TokenType.LEFT_BRACE, f"Expect '{{' before {kind} body.")
        body=self.block()
        return FunctionStmt(name, params, body)

    def var_declaration(self)->VarStmt:
        name=self.consume(TokenType.IDENTIFIER, "Expect variable name.")
        initializer=None
        if self.match(TokenType.EQUAL):
            initializer=self.expression()
        self.consume(TokenType.SEMICOLON, "Expect ';' after variable declaration.")
        return VarStmt(name, initializer)

    def statement(self)->Stmt:
        if self.match(TokenType.FOR):
            return self.for_statement()
        if self.match(TokenType.IF):
            return self.if_statement()
        if self.match(TokenType.PRINT):
            return self.print_statement()
        if self.match(TokenType.RETURN):
            return self.return_statement()
        if self.match(TokenType.WHILE):
            return self.while_statement()
        if self.match(TokenType.LEFT_BRACE):
            return BlockStmt(self.block())
        return self.expression_statement()

    def for_statement(self)->Stmt:
        # No node of its own: becomes { init; while (cond) { body; incr; } }
        self.consume(TokenType.LEFT_PAREN, "Expect '(' after 'for'.")
        if self.match(TokenType.SEMICOLON):
            initializer=None
        elif self.match(TokenType.VAR):
            initializer=self.var_declaration()
        else:
            initializer=self.expression_statement()

        condition=None
        if not self.check(TokenType.SEMICOLON):
            condition=self.expression()
        self.consume(TokenType.SEMICOLON, "Expect ';' after loop condition.")

        increment=None
        if not self.check(TokenType.RIGHT_PAREN):
            increment=self.expression()
        self.consume(TokenType.RIGHT_PAREN, "Expect ')' after for clauses.")

        body=self.statement()
        if increment is not None:
            body=BlockStmt([body, ExpressionStmt(increment)])
        if condition is None:
            condition=Literal(True)
        body=WhileStmt(condition, body)
        if initializer is not None:
            body=BlockStmt([initializer, body])
        return body

    def if_statement(self)->Stmt:
        self.consume(TokenType.LEFT_PAREN, "Expect '(' after 'if'.")
        condition=self.expression()
        self.consume(TokenType.RIGHT_PAREN, "Expect ')' after if condition.")
        then_branch=self.statement()
        else_branch=None
        if self.match(TokenType.ELSE):
            else_branch=self.statement()
        return IfStmt(condition, then_branch, else_branch)

    def print_statement(self)->Stmt:
        value=self.expression()
        self.consume(TokenType.SEMICOLON, "Expect ';' after value.")
        return PrintStmt(value)

    def return_statement(self)->Stmt:
        keyword=self.previous()
        value=None
        if not self.check(TokenType.SEMICOLON):
            value=self.expression()
        self.consume(TokenType.SEMICOLON, "Expect ';' after return value.")
        return ReturnStmt(keyword, value)

    def while_statement(self)->Stmt:
        self.consume(TokenType.LEFT_PAREN, "Expect '(' after 'while'.")
        condition=self.expression()
        self.consume(TokenType.RIGHT_PAREN, "Expect ')' after condition.")
        body=self.statement()
        return WhileStmt(condition, body)

    def block(self)->List[Stmt]:
        statements=[]
        while not self.check(TokenType.RIGHT_BRACE) and not self.is_at_end():
            statements.append(self.declaration())
        self.consume(TokenType.RIGHT_BRACE, "Expect '}' after block.")
        return statements

    def expression_statement(self)->Stmt:
        expr=self.expression()
        self.consume(TokenType.SEMICOLON, "Expect ';' after expression.")
        return ExpressionStmt(expr)

    def expression(self)->Expr:
        return self.assignment()

    def assignment(self)->Expr:
        expr=self.ternary()
        if self.match(TokenType.EQUAL):
            equals=self.previous()
            value=self.assignment()
            if isinstance(expr, Variable):
                return Assign(expr.name, value)
            if isinstance(expr, Get):
                return SetExpr(expr.object, expr.name, value)
            self.error(equals, "Invalid assignment target.")
            return value
        return expr

    def ternary(self)->Expr:
        expr=self.or_()
        if self.match(TokenType.QUESTION):
            then_branch=self.ternary()
            self.consume(TokenType.COLON, "Expect ':' in ternary expression.")
            else_branch=self.ternary()
            expr=Ternary(expr, then_branch, else_branch)
        return expr

    def or_(self)->Expr:
        expr=self.and_()
        while self.match(TokenType.OR):
            op=self.previous()
            right=self.and_()
            expr=Logical(expr, op, right)
        return expr

    def and_(self)->Expr:
        expr=self.equality()
        while self.match(TokenType.AND):
            op=self.previous()
            right=self.equality()
            expr=Logical(expr, op, right)
        return expr

    def equality(self)->Expr:
        expr=self.comparison()
        while self.match(TokenType.BANG_EQUAL, TokenType.EQUAL_EQUAL):
            op=self.previous()
            right=self.comparison()
            expr=Binary(expr, op, right)
        return expr

    def comparison(self)->Expr:
        expr=self.term()
        while self.match(TokenType.GREATER, TokenType.GREATER_EQUAL, TokenType.LESS, TokenType.LESS_EQUAL):
            op=self.previous()
            right=self.term()
            expr=Binary(expr, op, right)
        return expr

    def term(self)->Expr:
        expr=self.factor()
        while self.match(TokenType.MINUS, TokenType.PLUS):
            op=self.previous()
            right=self.factor()
            expr=Binary(expr, op, right)
        return expr

    def factor(self)->Expr:
        expr=self.unary()
        while self.match(TokenType.SLASH, TokenType.STAR):
            op=self.previous()
            right=self.unary()
            expr=Binary(expr, op, right)
        return expr

    def unary(self)->Expr:
        if self.match(TokenType.BANG, TokenType.MINUS):
            op=self.previous()
            right=self.unary()
            return Unary(op, right)
        return self.call()

    def call(self)->Expr:
        expr=self.primary()
        while True:
            if self.match(TokenType.LEFT_PAREN):
                expr=self.finish_call(expr)
            elif self.match(TokenType.DOT):
                name=self.consume(TokenType.IDENTIFIER, "Expect property name after '.'.")
                expr=Get(expr, name)
            else:
                break
        return expr

    def finish_call(self, callee:Expr)->Expr:
        args=[]
        if not self.check(TokenType.RIGHT_PAREN):
            while True:
                if len(args)>=MAX_ARGS:
                    self.error(self.peek(), f"Can't have more than {MAX_ARGS} arguments.")
                args.append(self.expression())
                if not self.match(TokenType.COMMA):
                    break
        paren=self.consume(TokenType.RIGHT_PAREN, "Expect ')' after arguments.")
        return Call(callee, paren, args)

    def primary(self)->Expr:
        if self.match(TokenType.FALSE):
            return Literal(False)
        if self.match(TokenType.TRUE):
            return Literal(True)
        if self.match(TokenType.NIL):
            return Literal(None)
        if self.match(TokenType.NUMBER, TokenType.STRING):
            return Literal(self.previous().literal)
        if self.match(TokenType.SUPER):
            keyword=self.previous()
            self.consume(TokenType.DOT, "Expect '.' after 'super'.")
            method=self.consume(TokenType.IDENTIFIER, "Expect superclass method name.")
            return Super(keyword, method)
        if self.match(TokenType.THIS):
            return This(self.previous())
        if self.match(TokenType.IDENTIFIER):
            return Variable(self.previous())
        if self.match(TokenType.LEFT_PAREN):
            expr=self.expression()
            self.consume(TokenType.RIGHT_PAREN, "Expect ')' after expression.")
            return Grouping(expr)
        raise self.error(self.peek(), "Expect expression.")

    # helpers
    def match(self, *types:TokenType)->bool:
        for t in types:
            if self.check(t):
                self.advance()
                return True
        return False

    def consume(self, type_:TokenType, message:str)->Token:
        if self.check(type_):
            return self.advance()
        raise self.error(self.peek(), message)

    def check(self, type_:TokenType)->bool:
        if self.is_at_end(): return False
        return self.peek().type==type_

    def advance(self)->Token:
        if not self.is_at_end():
            self.current+=1
        return self.previous()

    def is_at_end(self)->bool:
        return self.peek().type==TokenType.EOF

    def peek(self)->Token:
        return self.tokens[self.current]

    def previous(self)->Token:
        return self.tokens[self.current-1]

    def error(self, token:Token, message:str)->ParseError:
        self.reporter.error_at(token, message)
        return ParseError(message)

    def synchronize(self):
        self.advance()
        while not self.is_at_end():
            if self.previous().type==TokenType.SEMICOLON:
                return
            if self.peek().type in SYNC_TOKENS:
                return
            self.advance()

# ---------------------------
# Resolver
# ---------------------------

class FunctionType(enum.Enum):
    NONE=enum.auto()
    FUNCTION=enum.auto()
    METHOD=enum.auto()
    INITIALIZER=enum.auto()

class ClassType(enum.Enum):
    NONE=enum.auto()
    CLASS=enum.auto()
    SUBCLASS=enum.auto()

class Resolver:
    """Static pass computing, per local variable reference, its scope distance.

    Each scope maps a name to False (declared, initializer still running) or
    True (ready). An empty stack means global scope; names not found in any
    scope get no entry and are looked up in globals at run time.
    """
    def __init__(self, reporter:ErrorReporter):
        self.reporter=reporter
        self.scopes: List[Dict[str, bool]]=[]
        self.locals: Dict[Expr, int]={}
        self.current_function=FunctionType.NONE
        self.current_class=ClassType.NONE

    def resolve(self, statements:List[Stmt])->Dict[Expr, int]:
        for stmt in statements:
            self.resolve_stmt(stmt)
        return self.locals

    def resolve_stmt(self, stmt:Stmt):
        if isinstance(stmt, BlockStmt):
            self.begin_scope()
            for s in stmt.statements:
                self.resolve_stmt(s)
            self.end_scope()
        elif isinstance(stmt, VarStmt):
            self.declare(stmt.name)
            if stmt.initializer is not None:
                self.resolve_expr(stmt.initializer)
            self.define(stmt.name)
        elif isinstance(stmt, FunctionStmt):
            # Defined before the body so the function can call itself.
            self.declare(stmt.name)
            self.define(stmt.name)
            self.resolve_function(stmt, FunctionType.FUNCTION)
        elif isinstance(stmt, ClassStmt):
            self.resolve_class(stmt)
        elif isinstance(stmt, (ExpressionStmt, PrintStmt)):
            self.resolve_expr(stmt.expression)
        elif isinstance(stmt, IfStmt):
            self.resolve_expr(stmt.condition)
            self.resolve_stmt(stmt.then_branch)
            if stmt.else_branch is not None:
                self.resolve_stmt(stmt.else_branch)
        elif isinstance(stmt, WhileStmt):
            self.resolve_expr(stmt.condition)
            self.resolve_stmt(stmt.body)
        elif isinstance(stmt, ReturnStmt):
            if self.current_function==FunctionType.NONE:
                self.reporter.error_at(stmt.keyword, "Can't return from top-level code.")
            if stmt.value is not None:
                self.resolve_expr(stmt.value)
        elif isinstance(stmt, ErrorStmt):
            return
        else:
            raise TypeError(f"Unknown statement type: {stmt!r}")

    def resolve_class(self, stmt:ClassStmt):
        enclosing_class=self.current_class
        self.current_class=ClassType.CLASS
        self.declare(stmt.name)
        self.define(stmt.name)

        if stmt.superclass is not None:
            if stmt.superclass.name.lexeme==stmt.name.lexeme:
                self.reporter.error_at(stmt.superclass.name, "A class can't inherit from itself.")
            self.current_class=ClassType.SUBCLASS
            self.resolve_expr(stmt.superclass)
            self.begin_scope()
            self.scopes[-1]["super"]=True

        self.begin_scope()
        self.scopes[-1]["this"]=True
        for method in stmt.methods:
            kind=FunctionType.INITIALIZER if method.name.lexeme=="init" else FunctionType.METHOD
            self.resolve_function(method, kind)
        self.end_scope()

        if stmt.superclass is not None:
            self.end_scope()
        self.current_class=enclosing_class

    def resolve_function(self, fn:FunctionStmt, kind:FunctionType):
        enclosing_function=self.current_function
        self.current_function=kind
        self.begin_scope()
        for param in fn.params:
            self.declare(param)
            self.define(param)
        for s in fn.body:
            self.resolve_stmt(s)
        self.end_scope()
        self.current_function=enclosing_function

    def resolve_expr(self, expr:Expr):
        if isinstance(expr, Variable):
            if self.scopes and self.scopes[-1].get(expr.name.lexeme) is False:
                self.reporter.error_at(expr.name, "Can't read local variable in its own initializer.")
            self.resolve_local(expr, expr.name)
        elif isinstance(expr, Assign):
            self.resolve_expr(expr.value)
            self.resolve_local(expr, expr.name)
        elif isinstance(expr, (Binary, Logical)):
            self.resolve_expr(expr.left)
            self.resolve_expr(expr.right)
        elif isinstance(expr, Ternary):
            self.resolve_expr(expr.condition)
            self.resolve_expr(expr.then_branch)
            self.resolve_expr(expr.else_branch)
        elif isinstance(expr, Unary):
            self.resolve_expr(expr.right)
        elif isinstance(expr, Grouping):
            self.resolve_expr(expr.expression)
        elif isinstance(expr, Call):
            self.resolve_expr(expr.callee)
            for arg in expr.arguments:
                self.resolve_expr(arg)
        elif isinstance(expr, Get):
            self.resolve_expr(expr.object)
        elif isinstance(expr, SetExpr):
            self.resolve_expr(expr.value)
            self.resolve_expr(expr.object)
        elif isinstance(expr, This):
            if self.current_class==ClassType.NONE:
                self.reporter.error_at(expr.keyword, "Can't use 'this' outside of a class.")
                return
            self.resolve_local(expr, expr.keyword)
        elif isinstance(expr, Super):
            if self.current_class==ClassType.NONE:
                self.reporter.error_at(expr.keyword, "Can't use 'super' outside of a class.")
                return
            if self.current_class!=ClassType.SUBCLASS:
                self.reporter.error_at(expr.keyword, "Can't use 'super' in a class with no superclass.")
                return
            self.resolve_local(expr, expr.keyword)
        elif isinstance(expr, Literal):
            return
        else:
            raise TypeError(f"Unknown expression type: {expr!r}")

    def begin_scope(self):
        self.scopes.append({})

    def end_scope(self):
        self.scopes.pop()

    def declare(self, name:Token):
        if not self.scopes:
            return
        scope=self.scopes[-1]
        if name.lexeme in scope:
            self.reporter.error_at(name, "Already a variable with this name in this scope.")
        scope[name.lexeme]=False

    def define(self, name:Token):
        if not self.scopes:
            return
        self.scopes[-1][name.lexeme]=True

    def resolve_local(self, expr:Expr, name:Token):
        for depth, scope in enumerate(reversed(self.scopes)):
            if name.lexeme in scope:
                self.locals[expr]=depth
                return

# ---------------------------
# Runtime
# ---------------------------

class Environment:
    def __init__(self, enclosing:Optional['Environment']=None):
        self.enclosing=enclosing
        self.values: Dict[str, Any] = {}

    def define(self, name:str, value:Any):
        self.values[name]=value

    def get(self, name_token:Token)->Any:
        name=name_token.lexeme
        if name in self.values:
            return self.values[name]
        if self.enclosing is not None:
            return self.enclosing.get(name_token)
        raise LoxRuntimeError(name_token, f"Undefined variable '{name}'.")

    def assign(self, name_token:Token, value:Any):
        name=name_token.lexeme
        if name in self.values:
            self.values[name]=value
            return
        if self.enclosing is not None:
            self.enclosing.assign(name_token, value)
            return
        raise LoxRuntimeError(name_token, f"Undefined variable '{name}'.")

    def ancestor(self, distance:int)->'Environment':
        env=self
        for _ in range(distance):
            env=env.enclosing
        return env

    def get_at(self, distance:int, name:str)->Any:
        return self.ancestor(distance).values[name]

    def assign_at(self, distance:int, name_token:Token, value:Any):
        self.ancestor(distance).values[name_token.lexeme]=value

@dataclass(frozen=True)
class Returned:
    """Completion of a `return` statement, carried up to the call boundary."""
    value: Any

class LoxCallable(Protocol):
    def arity(self)->int: ...
    def call(self, interpreter:'Interpreter', arguments:List[Any])->Any: ...

class NativeFunction:
    def __init__(self, name:str, arity_:int, func):
        self._name=name
        self._arity=arity_
        self._func=func
    def arity(self)->int:
        return self._arity
    def call(self, interpreter:'Interpreter', arguments:List[Any])->Any:
        return self._func(interpreter, *arguments)
    def __str__(self)->str:
        return "<native fn>"

class LoxFunction:
    def __init__(self, declaration:FunctionStmt, closure:Environment, is_initializer:bool=False):
        self.declaration=declaration
        self.closure=closure
        self.is_initializer=is_initializer
    def bind(self, instance:'LoxInstance')->'LoxFunction':
        env=Environment(self.closure)
        env.define("this", instance)
        return LoxFunction(self.declaration, env, self.is_initializer)
    def arity(self)->int:
        return len(self.declaration.params)
    def call(self, interpreter:'Interpreter', arguments:List[Any])->Any:
        env=Environment(self.closure)
        for param, arg in zip(self.declaration.params, arguments):
            env.define(param.lexeme, arg)
        result=interpreter.execute_block(self.declaration.body, env)
        if self.is_initializer:
            return self.closure.get_at(0, "this")
        if result is None:
            return None
        return result.value
    def __str__(self)->str:
        return f"<fn {self.declaration.name.lexeme}>"

class LoxClass:
    def __init__(self, name:str, superclass:Optional['LoxClass'], methods:Dict[str, LoxFunction]):
        self.name=name
        self.superclass=superclass
        self.methods=methods
    def find_method(self, name:str)->Optional[LoxFunction]:
        if name in self.methods:
            return self.methods[name]
        if self.superclass is not None:
            return self.superclass.find_method(name)
        return None
    def arity(self)->int:
        initializer=self.find_method("init")
        if initializer:
            return initializer.arity()
        return 0
    def call(self, interpreter:'Interpreter', arguments:List[Any])->Any:
        instance=LoxInstance(self)
        initializer=self.find_method("init")
        if initializer:
            initializer.bind(instance).call(interpreter, arguments)
        return instance
    def __str__(self)->str:
        return self.name

class LoxInstance:
    def __init__(self, klass:LoxClass):
        self.klass=klass
        self.fields: Dict[str, Any] = {}

    def get(self, name_token:Token)->Any:
        name=name_token.lexeme
        if name in self.fields:
            return self.fields[name]
        # Bound on every access, so `this` is whichever instance was read from.
        method=self.klass.find_method(name)
        if method:
            return method.bind(self)
        raise LoxRuntimeError(name_token, f"Undefined property '{name}'.")

    def set(self, name_token:Token, value:Any):
        self.fields[name_token.lexeme]=value

    def __str__(self):
        return f"{self.klass.name} instance"

# ---------------------------
# Interpreter
# ---------------------------

def is_number(v:Any)->bool:
    return isinstance(v,(int,float)) and not isinstance(v,bool)

def stringify(v:Any)->str:
    if v is None: return "nil"
    if isinstance(v,bool): return "true" if v else "false"
    if is_number(v): return format_number(v)
    return str(v)

class Interpreter:
    def __init__(self, reporter:ErrorReporter, out=None):
        self.reporter=reporter
        self.out=out
        self.globals=Environment()
        self.locals: Dict[Expr, int]={}

        self.globals.define("clock", NativeFunction("clock", 0, lambda interp: time.time()))

    def interpret(self, statements:List[Stmt], locals_:Optional[Dict[Expr, int]]=None):
        if locals_:
            self.locals.update(locals_)
        try:
            for stmt in statements:
                result=self.execute(stmt, self.globals)
                if result is not None:
                    raise RuntimeError("return escaped to top level")
        except LoxRuntimeError as e:
            logger.debug("runtime error unwound to top level: %s", e)
            self.reporter.runtime_error(e)

    def execute(self, stmt:Stmt, env:Environment)->Optional[Returned]:
        if isinstance(stmt, ExpressionStmt):
            self.evaluate(stmt.expression, env)
        elif isinstance(stmt, PrintStmt):
            value=self.evaluate(stmt.expression, env)
            print(stringify(value), file=self.out)
        elif isinstance(stmt, VarStmt):
            value=None
            if stmt.initializer is not None:
                value=self.evaluate(stmt.initializer, env)
            env.define(stmt.name.lexeme, value)
        elif isinstance(stmt, BlockStmt):
            return self.execute_block(stmt.statements, Environment(env))
        elif isinstance(stmt, IfStmt):
            if self.is_truthy(self.evaluate(stmt.condition, env)):
                return self.execute(stmt.then_branch, env)
            if stmt.else_branch is not None:
                return self.execute(stmt.else_branch, env)
        elif isinstance(stmt, WhileStmt):
            while self.is_truthy(self.evaluate(stmt.condition, env)):
                result=self.execute(stmt.body, env)
                if result is not None:
                    return result
        elif isinstance(stmt, FunctionStmt):
            env.define(stmt.name.lexeme, LoxFunction(stmt, env))
        elif isinstance(stmt, ReturnStmt):
            value=None
            if stmt.value is not None:
                value=self.evaluate(stmt.value, env)
            return Returned(value)
        elif isinstance(stmt, ClassStmt):
            self.execute_class(stmt, env)
        elif isinstance(stmt, ErrorStmt):
            return None
        else:
            raise TypeError(f"Unknown statement type: {stmt!r}")
        return None

    def execute_block(self, statements:List[Stmt], env:Environment)->Optional[Returned]:
        for stmt in statements:
            result=self.execute(stmt, env)
            if result is not None:
                return result
        return None

    def execute_class(self, stmt:ClassStmt, env:Environment):
        superclass=None
        if stmt.superclass is not None:
            superclass=self.evaluate(stmt.superclass, env)
            if not isinstance(superclass, LoxClass):
                raise LoxRuntimeError(stmt.superclass.name, "Superclass must be a class.")

        env.define(stmt.name.lexeme, None)
        method_env=env
        if superclass is not None:
            method_env=Environment(env)
            method_env.define("super", superclass)

        methods={}
        for method in stmt.methods:
            is_init=(method.name.lexeme=="init")
            methods[method.name.lexeme]=LoxFunction(method, method_env, is_initializer=is_init)
        klass=LoxClass(stmt.name.lexeme, superclass, methods)
        env.assign(stmt.name, klass)

    def evaluate(self, expr:Expr, env:Environment)->Any:
        if isinstance(expr, Literal):
            return expr.value
        if isinstance(expr, Grouping):
            return self.evaluate(expr.expression, env)
        if isinstance(expr, Unary):
            right=self.evaluate(expr.right, env)
            if expr.operator.type==TokenType.MINUS:
                self.check_number_operand(expr.operator, right)
                return -right
            return not self.is_truthy(right)
        if isinstance(expr, Binary):
            return self.evaluate_binary(expr, env)
        if isinstance(expr, Logical):
            left=self.evaluate(expr.left, env)
            if expr.operator.type==TokenType.OR:
                if self.is_truthy(left):
                    return left
            elif not self.is_truthy(left):
                return left
            return self.evaluate(expr.right, env)
        if isinstance(expr, Ternary):
            if self.is_truthy(self.evaluate(expr.condition, env)):
                return self.evaluate(expr.then_branch, env)
            return self.evaluate(expr.else_branch, env)
        if isinstance(expr, Variable):
            return self.look_up_variable(expr.name, expr, env)
        if isinstance(expr, Assign):
            value=self.evaluate(expr.value, env)
            distance=self.locals.get(expr)
            if distance is not None:
                env.assign_at(distance, expr.name, value)
            else:
                self.globals.assign(expr.name, value)
            return value
        if isinstance(expr, Call):
            return self.evaluate_call(expr, env)
        if isinstance(expr, Get):
            obj=self.evaluate(expr.object, env)
            if isinstance(obj, LoxInstance):
                return obj.get(expr.name)
            raise LoxRuntimeError(expr.name, "Only instances have properties.")
        if isinstance(expr, SetExpr):
            obj=self.evaluate(expr.object, env)
            if not isinstance(obj, LoxInstance):
                raise LoxRuntimeError(expr.name, "Only instances have fields.")
            value=self.evaluate(expr.value, env)
            obj.set(expr.name, value)
            return value
        if isinstance(expr, This):
            return self.look_up_variable(expr.keyword, expr, env)
        if isinstance(expr, Super):
            distance=self.locals[expr]
            superclass=env.get_at(distance, "super")
            # `this` lives in the scope just inside the one holding `super`.
            obj=env.get_at(distance-1, "this")
            method=superclass.find_method(expr.method.lexeme)
            if method is None:
                raise LoxRuntimeError(expr.method, f"Undefined property '{expr.method.lexeme}'.")
            return method.bind(obj)
        raise TypeError(f"Unknown expression type: {expr!r}")

    def evaluate_binary(self, expr:Binary, env:Environment)->Any:
        left=self.evaluate(expr.left, env)
        right=self.evaluate(expr.right, env)
        t=expr.operator.type
        if t==TokenType.PLUS:
            if is_number(left) and is_number(right):
                return left+right
            if isinstance(left,str) and isinstance(right,str):
                return left+right
            raise LoxRuntimeError(expr.operator, "Operands must be two numbers or two strings")
        if t==TokenType.EQUAL_EQUAL:
            return self.is_equal(left,right)
        if t==TokenType.BANG_EQUAL:
            return not self.is_equal(left,right)

        self.check_number_operands(expr.operator,left,right)
        if t==TokenType.MINUS:
            return left-right
        if t==TokenType.STAR:
            return left*right
        if t==TokenType.SLASH:
            try:
                return left/right
            except ZeroDivisionError:
                if left==0 or math.isnan(left):
                    return math.nan
                return math.copysign(math.inf, left)*math.copysign(1.0, right)
        if t==TokenType.GREATER:
            return left>right
        if t==TokenType.GREATER_EQUAL:
            return left>=right
        if t==TokenType.LESS:
            return left<right
        if t==TokenType.LESS_EQUAL:
            return left<=right
        raise TypeError(f"Unknown binary operator: {expr.operator.lexeme}")

    def evaluate_call(self, expr:Call, env:Environment)->Any:
        callee=self.evaluate(expr.callee, env)
        args=[self.evaluate(a, env) for a in expr.arguments]
        if not isinstance(callee, (LoxFunction, LoxClass, NativeFunction)):
            raise LoxRuntimeError(expr.paren, "Can only call functions and classes.")
        function: LoxCallable=callee
        if len(args)!=function.arity():
            raise LoxRuntimeError(expr.paren, f"Expected {function.arity()} arguments but got {len(args)}.")
        return function.call(self, args)

    def look_up_variable(self, name:Token, expr:Expr, env:Environment)->Any:
        distance=self.locals.get(expr)
        if distance is not None:
            return env.get_at(distance, name.lexeme)
        return self.globals.get(name)

    def is_truthy(self, v:Any)->bool:
        if v is None: return False
        if isinstance(v,bool): return v
        return True

    def is_equal(self,a:Any,b:Any)->bool:
        if a is None: return b is None
        # Python treats True == 1; Lox does not.
        if isinstance(a,bool) or isinstance(b,bool):
            return type(a) is type(b) and a==b
        return a==b

    def check_number_operand(self, operator:Token, operand:Any):
        if is_number(operand): return
        raise LoxRuntimeError(operator, "Operand must be a number.")

    def check_number_operands(self, operator:Token, left:Any, right:Any):
        if is_number(left) and is_number(right): return
        raise LoxRuntimeError(operator, "Operands must be numbers.")

# ---------------------------
# Runner / CLI
# ---------------------------

EX_OK=0
EX_USAGE=64
EX_DATAERR=65
EX_NOINPUT=66
EX_SOFTWARE=70

def parse_source(source:str, reporter:ErrorReporter)->List[Stmt]:
    tokens=Scanner(source, reporter).scan_tokens()
    logger.debug("scanned %d tokens", len(tokens))
    statements=Parser(tokens, reporter).parse()
    logger.debug("parsed %d top-level statements", len(statements))
    return statements

def run_source(source:str, interpreter:Optional[Interpreter]=None, reporter:Optional[ErrorReporter]=None)->int:
    if reporter is None:
        reporter=interpreter.reporter if interpreter is not None else ErrorReporter()
    if interpreter is None:
        interpreter=Interpreter(reporter)

    statements=parse_source(source, reporter)
    if reporter.had_error:
        return EX_DATAERR
    locals_=Resolver(reporter).resolve(statements)
    logger.debug("resolved %d local references", len(locals_))
    if reporter.had_error:
        return EX_DATAERR

    interpreter.interpret(statements, locals_)
    if reporter.had_runtime_error:
        return EX_SOFTWARE
    return EX_OK

def read_source(path:str)->Optional[str]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        print(f"Could not read {path}: {e.strerror}", file=sys.stderr)
        return None

def run_file(path:str)->int:
    source=read_source(path)
    if source is None:
        return EX_NOINPUT
    return run_source(source)

def print_ast(path:str)->int:
    source=read_source(path)
    if source is None:
        return EX_NOINPUT
    reporter=ErrorReporter()
    statements=parse_source(source, reporter)
    if reporter.had_error:
        return EX_DATAERR
    print(AstPrinter().print_program(statements))
    return EX_OK

def repl(stdin=None):
    stdin=stdin if stdin is not None else sys.stdin
    print("Lox REPL. End each statement with ';'. Ctrl+D to exit.")
    reporter=ErrorReporter()
    interpreter=Interpreter(reporter)
    while True:
        print("> ", end="", flush=True)
        try:
            line=stdin.readline()
        except KeyboardInterrupt:
            print()
            return
        if not line:
            print()
            return
        if not line.strip():
            continue
        run_source(line, interpreter, reporter)
        reporter.reset()

def main(argv:Optional[List[str]]=None)->int:
    p=argparse.ArgumentParser(prog="treelox", description="Run Lox programs.")
    p.add_argument("file", nargs="?", help="Path to .lox file to run.")
    p.add_argument("--repl", action="store_true", help="Start a REPL.")
    p.add_argument("--ast", action="store_true", help="Print the parsed syntax tree instead of running it.")
    p.add_argument("-v", "--verbose", action="store_true", help="Log pipeline stages to stderr.")
    args=p.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    if args.ast:
        if not args.file:
            p.print_usage(sys.stderr)
            return EX_USAGE
        return print_ast(args.file)
    if args.repl or not args.file:
        repl()
        return EX_OK
    return run_file(args.file)

if __name__ == "__main__":
    raise SystemExit(main())
