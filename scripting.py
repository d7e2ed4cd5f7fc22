'''
scripting.py -- parses and runs the user's drawing scripts

A script is Python source defining an entry point, by default

    def draw(X, Y, Z, GRID_SIZE):
        return '#ff0000' if Y == 0 else False

The source is compiled and its top level executed once per run; the entry
point is then called once per grid cell. Scripts see a trimmed set of
builtins (no `import` statement) plus the math helpers below, including the
`math` module itself. This is a convenience for drawing code, not a sandbox:
scripts run in the worker process with no isolation from it.
'''

import math
import random

import logutil


class ScriptSyntaxError(Exception):
    """ The script could not be parsed or its top level failed to run. """


class ScriptEvalError(Exception):
    """ A single call into the script failed. """


def _script_print(*args):
    logutil.log("SCRIPT", "print: " + " ".join(str(a) for a in args))


def _script_range(start, stop=None, step=1):
    if step == 0:
        raise ValueError("range() step cannot be zero")
    if stop is None:
        return range(int(start))
    return range(int(start), int(stop), int(step))


SAFE_BUILTINS = {
    'True': True, 'False': False, 'None': None,
    'print': _script_print,
    'abs': abs, 'min': min, 'max': max, 'round': round, 'len': len,
    'range': _script_range,
    'int': int, 'float': float, 'str': str, 'bool': bool,
    'list': list, 'tuple': tuple, 'dict': dict, 'set': set,
    'sum': sum, 'any': any, 'all': all, 'enumerate': enumerate, 'zip': zip,
    'sorted': sorted, 'reversed': reversed, 'map': map, 'filter': filter,
    'isinstance': isinstance, 'divmod': divmod, 'pow': pow,
    'ValueError': ValueError, 'ZeroDivisionError': ZeroDivisionError,
    'Exception': Exception,
}

MATH_CONTEXT = {
    'math': math,
    'floor': math.floor, 'ceil': math.ceil, 'sqrt': math.sqrt,
    'sin': math.sin, 'cos': math.cos, 'tan': math.tan,
    'asin': math.asin, 'acos': math.acos, 'atan': math.atan, 'atan2': math.atan2,
    'log': math.log, 'exp': math.exp, 'log10': math.log10, 'log2': math.log2,
    'log1p': math.log1p, 'hypot': math.hypot,
    'random': random.random,
    'mod': lambda x, y: math.fmod(x, y),
    'div': lambda x, y: x / y,
    'PI': math.pi, 'E': math.e, 'TAU': math.tau, 'EULER': math.e,
    'LN2': math.log(2), 'LN10': math.log(10),
    'LOG2E': math.log2(math.e), 'LOG10E': math.log10(math.e),
    'SQRT1_2': math.sqrt(0.5), 'SQRT2': math.sqrt(2),
}


class ScriptProgram(object):
    def __init__(self, source, code, namespace):
        self.source = source
        self.code = code
        self.namespace = namespace

    def entry_point(self, name):
        fn = self.namespace.get(name)
        if fn is None:
            raise ScriptEvalError(f"name '{name}' is not defined")
        if not callable(fn):
            raise ScriptEvalError(f"'{name}' is not callable")
        return fn


class ScriptEvaluator(object):
    '''
    Parses script source into reusable programs and calls their entry points.
    '''
    def __init__(self, context=None, filename='<script>'):
        self.filename = filename
        self.context = dict(MATH_CONTEXT)
        if context:
            self.context.update(context)

    def parse(self, source):
        try:
            code = compile(source, self.filename, 'exec')
        except SyntaxError as e:
            raise ScriptSyntaxError(f"Python Syntax Error: {e.msg} (line {e.lineno})") from e
        except ValueError as e:
            raise ScriptSyntaxError(f"Python Syntax Error: {e}") from e
        namespace = dict(self.context)
        namespace['__builtins__'] = dict(SAFE_BUILTINS)
        namespace['__name__'] = '__script__'
        try:
            exec(code, namespace)
        except Exception as e:
            raise ScriptSyntaxError(f"Python Syntax Error: {type(e).__name__}: {e}") from e
        return ScriptProgram(source, code, namespace)

    def call(self, program, entry_point, args):
        fn = program.entry_point(entry_point)
        try:
            return fn(*args)
        except Exception as e:
            raise ScriptEvalError(f"{type(e).__name__}: {e}") from e
