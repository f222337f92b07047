from treelox import Scanner, TokenType as T


def scan(source, reporter):
    return Scanner(source, reporter).scan_tokens()


def types(tokens):
    return [t.type for t in tokens]


def test_var_declaration(reporter):
    tokens = scan('var language = "lox"', reporter)
    assert types(tokens) == [T.VAR, T.IDENTIFIER, T.EQUAL, T.STRING, T.EOF]
    assert tokens[3].literal == "lox"
    assert tokens[3].lexeme == '"lox"'


def test_single_char_lexemes(reporter):
    tokens = scan("/(){},.-+;*?:", reporter)
    assert types(tokens) == [
        T.SLASH, T.LEFT_PAREN, T.RIGHT_PAREN, T.LEFT_BRACE, T.RIGHT_BRACE,
        T.COMMA, T.DOT, T.MINUS, T.PLUS, T.SEMICOLON, T.STAR,
        T.QUESTION, T.COLON, T.EOF,
    ]


def test_double_char_lexemes(reporter):
    tokens = scan("!===<=>==!<>", reporter)
    assert types(tokens) == [
        T.BANG_EQUAL, T.EQUAL_EQUAL, T.LESS_EQUAL, T.GREATER_EQUAL,
        T.EQUAL, T.BANG, T.LESS, T.GREATER, T.EOF,
    ]


def test_numbers_are_floats(reporter):
    tokens = scan("12 3.5 7.", reporter)
    assert types(tokens) == [T.NUMBER, T.NUMBER, T.NUMBER, T.DOT, T.EOF]
    assert tokens[0].literal == 12.0
    assert isinstance(tokens[0].literal, float)
    assert tokens[1].literal == 3.5


def test_keywords_and_identifiers(reporter):
    tokens = scan("for super this orchid _x1 nil", reporter)
    assert types(tokens) == [
        T.FOR, T.SUPER, T.THIS, T.IDENTIFIER, T.IDENTIFIER, T.NIL, T.EOF,
    ]


def test_comments_are_skipped_and_lines_counted(reporter):
    source = "// line comment\n/* block\ncomment */ print\n1;"
    tokens = scan(source, reporter)
    assert types(tokens) == [T.PRINT, T.NUMBER, T.SEMICOLON, T.EOF]
    assert tokens[0].line == 3
    assert tokens[1].line == 4


def test_multiline_string_counts_lines(reporter):
    tokens = scan('"a\nb" x', reporter)
    assert tokens[0].literal == "a\nb"
    assert tokens[1].line == 2


def test_unterminated_string(reporter, errors):
    tokens = scan('"abc', reporter)
    assert errors.getvalue() == "[line 1] Error: Unterminated string.\n"
    assert types(tokens) == [T.EOF]
    assert reporter.had_error


def test_unterminated_block_comment(reporter, errors):
    scan("/* an unterminated comment", reporter)
    assert errors.getvalue() == "[line 1] Error: Unterminated multi-line comment.\n"


def test_unexpected_character_keeps_scanning(reporter, errors):
    tokens = scan("1 @ 2", reporter)
    assert errors.getvalue() == "[line 1] Error: Unexpected character.\n"
    assert types(tokens) == [T.NUMBER, T.NUMBER, T.EOF]
