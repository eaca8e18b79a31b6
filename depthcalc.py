"""
depth tracking calculator
- single line integer expressions: + - * / ( )
- no precedence: pending operations live on a stack tagged with paren depth
- a number at the same depth as the top operation folds the whole stack

pipeline:
text    -> lex()        -> [Token]
[Token] -> parse()      -> int
[Token] -> parse_tree() -> AST -> Interpreter / Displayer
"""

from collections import namedtuple
from enum import Enum
import argparse
import sys

from pyecharts import options as opts
from pyecharts.charts import Tree

DISPLAY_AST = False
LOCAL_ECHARTS = False
_SHOULD_LOG_PARSE = False
_SHOULD_LOG_EVAL = False

INT32_MIN = -2 ** 31
INT32_MAX = 2 ** 31 - 1


def log_parse(msg, *args):
    if _SHOULD_LOG_PARSE:
        print(msg.format(*args))


def log_eval(msg, *args):
    if _SHOULD_LOG_EVAL:
        print(msg.format(*args))


###############################################################################
#                                                                             #
#   ERROR MESSAGE                                                             #
#                                                                             #
###############################################################################

class ErrorInfo:
    # lexer error

    @staticmethod
    def unexpected_char(item):
        return f'invalid syntax. saw unexpected character: {item!r}'

    # parser error

    @staticmethod
    def missing_left_operand(item):
        return f'operator `{item}` has no left operand'

    @staticmethod
    def unresolved_expression():
        return 'parse error'

    # evaluation error

    @staticmethod
    def division_by_zero(item):
        return f'attempt to divide `{item}` by zero'


class Error(Exception):
    def __init__(self, position, message):
        super().__init__(message)
        self.position = position
        self.message = message

    def __str__(self):
        return f'{self.__class__.__name__}: <{self.position}>: {self.message}'

    __repr__ = __str__


class BadInput(Error):
    def __init__(self, position, unexpected):
        super().__init__(position, ErrorInfo.unexpected_char(unexpected))
        self.unexpected = unexpected


class ParseError(Error):
    pass


class ArithmeticFault(Error):
    pass


###############################################################################
#                                                                             #
#  LEXER                                                                      #
#                                                                             #
###############################################################################

class TokenType(Enum):
    EOF         = 'EOF'
    NUMBER      = 'NUMBER'
    OPERATION   = 'OPERATION'
    LPAREN      = '('
    RPAREN      = ')'


class Op(Enum):
    ADD = '+'
    SUB = '-'
    MUL = '*'
    DIV = '/'


STATEMENT_SEPARATORS = (';', '\n')


def wrap_i32(value):
    """wrap an int into the signed 32 bit range, two's complement style
    """
    return (value - INT32_MIN) % 2 ** 32 + INT32_MIN


class Token:
    def __init__(self, token_type, value, position=None):
        """Token

        Args:
          token_type: TokenType
          value: int for NUMBER, Op for OPERATION, str for parens, None for EOF
          position: index of the first char in the input
        """
        self.type = token_type
        self.value = value
        self.position = position

    @classmethod
    def number(cls, value, position=None):
        return cls(TokenType.NUMBER, value, position)

    @classmethod
    def operation(cls, op, position=None):
        return cls(TokenType.OPERATION, op, position)

    @classmethod
    def lparen(cls, position=None):
        return cls(TokenType.LPAREN, '(', position)

    @classmethod
    def rparen(cls, position=None):
        return cls(TokenType.RPAREN, ')', position)

    @classmethod
    def eof(cls, position=None):
        return cls(TokenType.EOF, None, position)

    def __eq__(self, other):
        if not isinstance(other, Token):
            return NotImplemented
        return self.type == other.type and self.value == other.value

    def __str__(self):
        return f'Token({self.type.name}, {repr(self.value)}, pos={self.position})'

    def __repr__(self):
        return self.__str__()


class Lexer:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.current_char = self.text[self.pos] if self.text else None
        self.result = []

    def error(self):
        raise BadInput(self.pos, self.current_char)

    def advance(self):
        """advance the 'pos' pointer and set the 'current_char' variable.
        """
        self.pos += 1
        if self.pos > len(self.text) - 1:
            self.current_char = None  # end of input
        else:
            self.current_char = self.text[self.pos]

    def digit(self):
        """merge a digit into the trailing number token, or start a new one
        """
        num = int(self.current_char)
        if self.result and self.result[-1].type == TokenType.NUMBER:
            last = self.result.pop()
            self.result.append(Token.number(wrap_i32(last.value * 10 + num), last.position))
        else:
            self.result.append(Token.number(num, self.pos))

    def tokens(self):
        """lexical analyzer, lexer, scanner, tokenizer

        the whole input is scanned before anything is returned, so a bad char
        anywhere means no tokens at all.
        """
        while self.current_char is not None:
            if self.current_char == ' ':
                self.advance()
                continue

            if self.current_char in STATEMENT_SEPARATORS:
                self.result.append(Token.eof(self.pos))
                break

            if self.current_char.isdigit() and self.current_char.isascii():
                self.digit()
                self.advance()
                continue

            if self.current_char in ('(', ')'):
                self.result.append(Token(TokenType(self.current_char), self.current_char, self.pos))
                self.advance()
                continue

            # operators
            try:
                op = Op(self.current_char)
            except ValueError:
                self.error()
            else:
                self.result.append(Token.operation(op, self.pos))
                self.advance()

        return self.result


def lex(text):
    return Lexer(text).tokens()


###############################################################################
#                                                                             #
#  AST                                                                        #
#                                                                             #
###############################################################################

class AST:
    pass


class Num(AST):
    """leaf side
    """

    def __init__(self, value):
        self.value = value

    def __eq__(self, other):
        return isinstance(other, Num) and self.value == other.value

    def __repr__(self):
        return f'Num({self.value})'


class BinOp(AST):
    """node side
    """

    def __init__(self, left, op: Op, right):
        self.left = left
        self.op = op
        self.right = right

    def __eq__(self, other):
        node = self
        while isinstance(node, BinOp):
            if not isinstance(other, BinOp) or node.op != other.op or node.left != other.left:
                return False
            node, other = node.right, other.right
        return node == other

    def __repr__(self):
        spine, tail = right_spine(self)
        head = ''.join(f'BinOp({n.left!r}, {n.op.name}, ' for n in spine)
        return head + repr(tail) + ')' * len(spine)


def right_spine(node):
    """split a right-leaning tree into its BinOp nodes, top first, and the
    node hanging off the last one
    """
    spine = []
    while isinstance(node, BinOp):
        spine.append(node)
        node = node.right
    return spine, node


###############################################################################
#                                                                             #
#  PARSER                                                                     #
#                                                                             #
###############################################################################

PendingOperation = namedtuple('PendingOperation', ['depth', 'op', 'operand'])


class Parser:
    def __init__(self, tokens):
        """
        Args:
          tokens: list[Token], usually straight from lex()
        """
        self.tokens = tokens
        self.depth = 0
        self.op_stack = []
        self.value = None

    def error(self, position, message):
        raise ParseError(position, message)

    def _scan(self):
        """walk the tokens until a number lands at the depth of the top
        pending operation.

        returns that number, with self.op_stack still holding every pending
        operation; the caller decides how to unwind it.
        """
        log_parse('{}', self.tokens)
        self.depth = 0
        self.op_stack = []
        self.value = None

        for index, token in enumerate(self.tokens):
            log_parse('token: {}', token)

            if token.type == TokenType.OPERATION:
                if self.value is None:
                    self.error(index, ErrorInfo.missing_left_operand(token.value.value))
                self.op_stack.append(PendingOperation(self.depth, token.value, self.value))
                self.value = None
            elif token.type == TokenType.NUMBER:
                if self.op_stack and self.op_stack[-1].depth == self.depth:
                    return token.value
                self.value = token.value
            elif token.type == TokenType.LPAREN:
                self.depth += 1
            elif token.type == TokenType.RPAREN:
                self.depth -= 1
            # EOF: nothing to do

            log_parse('depth: {} value: {} op_stack: {}', self.depth, self.value, self.op_stack)

        self.error(None, ErrorInfo.unresolved_expression())

    def parse(self) -> int:
        seed = self._scan()
        return eval_stack(self.op_stack, seed)

    def parse_tree(self) -> AST:
        seed = self._scan()
        return unwind_with_ast(self.op_stack, Num(seed))


def parse(tokens):
    return Parser(tokens).parse()


def parse_tree(tokens):
    return Parser(tokens).parse_tree()


###############################################################################
#                                                                             #
#  EVALUATOR                                                                  #
#                                                                             #
###############################################################################

def eval_op(op, left, right):
    log_eval('eval_op({}, {}, {})', op.name, left, right)

    if op == Op.ADD:
        result = left + right
    elif op == Op.SUB:
        result = left - right
    elif op == Op.MUL:
        result = left * right
    elif op == Op.DIV:
        if right == 0:
            raise ArithmeticFault(None, ErrorInfo.division_by_zero(left))
        # truncate toward zero, python's // floors
        result = abs(left) // abs(right)
        if (left < 0) != (right < 0):
            result = -result

    return wrap_i32(result)


def eval_stack(op_stack, seed):
    """fold the pending operations, most recent first

    the popped operand is the left side, the running seed the right side.
    """
    log_eval('eval_stack called with {} pending, seed={}', len(op_stack), seed)

    while op_stack:
        _depth, op, operand = op_stack.pop()
        seed = eval_op(op, operand, seed)
    return seed


def unwind_with_ast(op_stack, ast):
    """same walk as eval_stack, but keeps the tree instead of the value
    """
    log_eval('unwind_with_ast called with {} pending', len(op_stack))

    while op_stack:
        _depth, op, operand = op_stack.pop()
        log_eval('unwind: {} {}', operand, op.name)
        ast = BinOp(Num(operand), op, ast)
    return ast


class NodeVisitor:
    def visit(self, node):
        """dispatches
        """
        method_name = 'visit_' + type(node).__name__
        visitor = getattr(self, method_name, self.generic_visitor)
        return visitor(node)

    def generic_visitor(self, node):
        raise Error(None, f'No visit_{type(node).__name__} method')


class Interpreter(NodeVisitor):
    def __init__(self, tree) -> None:
        self.tree = tree

    def visit_BinOp(self, node: BinOp):
        # walk the right spine in a loop, trees nest one level per operation
        spine, tail = right_spine(node)
        result = self.visit(tail)
        for n in reversed(spine):
            result = eval_op(n.op, self.visit(n.left), result)
        return result

    def visit_Num(self, node: Num):
        return node.value

    def interpret(self):
        return self.visit(self.tree)


###############################################################################
#                                                                             #
#  DISPLAY                                                                    #
#                                                                             #
###############################################################################

class Displayer(NodeVisitor):
    def __init__(self, tree) -> None:
        self.tree = tree

    def visit_BinOp(self, node: BinOp):
        spine, tail = right_spine(node)
        data = self.visit(tail)
        for n in reversed(spine):
            data = {
                'name': f'{n.op.value}',
                'children': [self.visit(n.left), data]
            }
        return data

    def visit_Num(self, node: Num):
        data = {
            'name': f'{str(node.value)}'
        }
        return data

    def display(self, path='Tree.html'):
        data = self.visit(self.tree)
        init_opts = opts.InitOpts(page_title='Tree')
        if LOCAL_ECHARTS:
            init_opts = opts.InitOpts(page_title='Tree', js_host='./')
        (
            Tree(init_opts=init_opts)
            .add(
                series_name="",         # name
                data=[data],            # data
                initial_tree_depth=-1,  # all expand
                orient="TB",            # top-to-bottom
                label_opts=opts.LabelOpts(
                    position="top",
                    vertical_align="middle",
                ),
            )
            .set_global_opts(title_opts=opts.TitleOpts(title="Tree"))
            .render(path)
        )
        return path


###############################################################################
#                                                                             #
#   MAIN                                                                      #
#                                                                             #
###############################################################################

def calculate(text):
    return parse(lex(text))


def run_line(text):
    """evaluate one line, print the value or the error

    returns True on success.
    """
    try:
        tokens = lex(text)
        if DISPLAY_AST:
            # parse_tree consumes its own stack, so it needs its own parser
            print(f'open "{Displayer(parse_tree(tokens)).display()}"')
        print(parse(tokens))
    except (BadInput, ParseError, ArithmeticFault) as e:
        print(e)
        return False
    return True


def main(argv=None):
    global DISPLAY_AST
    global LOCAL_ECHARTS
    global _SHOULD_LOG_PARSE
    global _SHOULD_LOG_EVAL

    parser = argparse.ArgumentParser(description='depthcalc - depth tracking integer calculator')
    parser.add_argument('expression', nargs='?', help='expression to evaluate; omit for a prompt')
    parser.add_argument('--parse', action='store_true', help='Print parser state for every token')
    parser.add_argument('--eval', action='store_true', help='Print every evaluation step')
    parser.add_argument('--tree', action='store_true', help='Render the parse tree to Tree.html')
    parser.add_argument('--local-echarts', action='store_true', help='Load echarts.min.js from the html directory')
    args = parser.parse_args(argv)

    _SHOULD_LOG_PARSE = args.parse
    _SHOULD_LOG_EVAL = args.eval
    DISPLAY_AST = args.tree
    LOCAL_ECHARTS = args.local_echarts

    if args.expression is not None:
        return 0 if run_line(args.expression) else 1

    while True:
        try:
            text = input('calc> ')
        except (EOFError, KeyboardInterrupt):
            break
        if not text.strip():
            continue

        run_line(text)

    return 0


if __name__ == '__main__':
    sys.exit(main())
