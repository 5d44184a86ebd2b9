"""
Forward-mode automatic differentiation with dual numbers.

This module implements the dual-number arithmetic that drives Jacobian
extraction for arbitrary user models. A dual number carries a real value
together with a derivative component and propagates both through every
arithmetic operation.

Mathematical Foundation:
    A dual number is a + bε with ε² = 0. For any analytic function f:

        f(a + bε) = f(a) + f'(a)·b·ε

    so evaluating f on a dual number yields the exact derivative in the ε
    component. Binary operations follow the usual rules:

        (a + bε) + (c + dε) = (a + c) + (b + d)ε
        (a + bε) · (c + dε) = ac + (ad + bc)ε
        (a + bε) / (c + dε) = a/c + (bc - ad)/c² ε

Derivative Representation:
    The derivative component is either a float (one seeded direction) or a
    1-D numpy array (a vector of partials when several inputs are seeded
    at once). Both forms use the same propagation rules since numpy
    broadcasts scalars against arrays.

Author: Scientific Computing Team
License: MIT
"""

import math
from numbers import Real
from typing import Any, Callable, Dict, Union

import numpy as np

Derivative = Union[float, np.ndarray]


class Dual:
    """
    Real value augmented with a derivative component.

    Instances are value-semantic: every operation returns a new Dual and
    never mutates its operands. Plain reals (Python or numpy scalars) are
    promoted to constants with zero derivative wherever they meet a Dual.

    Comparisons act on the value only, which lets model code branch on
    the current operating point. The derivative of a branching model is
    whatever the taken branch implies.

    Attributes:
        value: Real part
        derivative: Derivative part (float or 1-D array of partials)
    """

    __slots__ = ("value", "derivative")

    def __init__(self, value: float, derivative: Derivative = 0.0):
        if isinstance(value, Dual):
            raise TypeError("Dual value must be a real number, got Dual")
        self.value = float(value)
        if isinstance(derivative, np.ndarray):
            self.derivative = derivative.astype(float)
        else:
            self.derivative = float(derivative)

    @classmethod
    def constant(cls, value: float) -> "Dual":
        """Dual with zero derivative."""
        return cls(value, 0.0)

    @classmethod
    def variable(cls, value: float, seed: Derivative = 1.0) -> "Dual":
        """Dual seeded with the given derivative direction."""
        return cls(value, seed)

    def __repr__(self) -> str:
        return f"Dual({self.value!r}, {self.derivative!r})"

    def __float__(self):
        raise TypeError(
            "Refusing to convert Dual to float, the derivative would be lost; "
            "use value_of() to read the value explicitly"
        )

    # Arithmetic

    def __add__(self, other):
        if isinstance(other, Dual):
            return Dual(self.value + other.value, self.derivative + other.derivative)
        if isinstance(other, Real):
            return Dual(self.value + other, self.derivative)
        return NotImplemented

    __radd__ = __add__

    def __sub__(self, other):
        if isinstance(other, Dual):
            return Dual(self.value - other.value, self.derivative - other.derivative)
        if isinstance(other, Real):
            return Dual(self.value - other, self.derivative)
        return NotImplemented

    def __rsub__(self, other):
        if isinstance(other, Real):
            return Dual(other - self.value, -self.derivative)
        return NotImplemented

    def __mul__(self, other):
        if isinstance(other, Dual):
            return Dual(
                self.value * other.value,
                self.derivative * other.value + self.value * other.derivative,
            )
        if isinstance(other, Real):
            return Dual(self.value * other, self.derivative * other)
        return NotImplemented

    __rmul__ = __mul__

    def __truediv__(self, other):
        if isinstance(other, Dual):
            return Dual(
                self.value / other.value,
                (self.derivative * other.value - self.value * other.derivative)
                / (other.value * other.value),
            )
        if isinstance(other, Real):
            return Dual(self.value / other, self.derivative / other)
        return NotImplemented

    def __rtruediv__(self, other):
        if isinstance(other, Real):
            return Dual(
                other / self.value,
                -other * self.derivative / (self.value * self.value),
            )
        return NotImplemented

    def __neg__(self):
        return Dual(-self.value, -self.derivative)

    def __pos__(self):
        return Dual(self.value, self.derivative)

    def __abs__(self):
        # d|x| = sign(x)·dx, zero slope chosen at the kink
        return Dual(abs(self.value), self.derivative * np.sign(self.value))

    def __pow__(self, other):
        base = np.float64(self.value)
        if isinstance(other, Dual):
            if not np.any(other.derivative):
                # Constant exponent; ln a is undefined for negative bases
                result = self ** other.value
                return Dual(result.value, result.derivative + other.derivative)
            # a^b = exp(b·ln a)
            with np.errstate(divide="ignore", invalid="ignore"):
                result = base ** other.value
                return Dual(
                    result,
                    result * (other.derivative * np.log(base)
                              + other.value * self.derivative / base),
                )
        if isinstance(other, Real):
            if other == 0:
                return Dual(1.0, self.derivative * 0.0)
            with np.errstate(divide="ignore", invalid="ignore"):
                return Dual(
                    base ** other,
                    other * base ** (other - 1) * self.derivative,
                )
        return NotImplemented

    def __rpow__(self, other):
        if isinstance(other, Real):
            base = np.float64(other)
            with np.errstate(divide="ignore", invalid="ignore"):
                result = base ** self.value
                return Dual(result, result * np.log(base) * self.derivative)
        return NotImplemented

    # Comparisons act on values only

    def __eq__(self, other):
        return self.value == value_of(other)

    def __ne__(self, other):
        return self.value != value_of(other)

    def __lt__(self, other):
        return self.value < value_of(other)

    def __le__(self, other):
        return self.value <= value_of(other)

    def __gt__(self, other):
        return self.value > value_of(other)

    def __ge__(self, other):
        return self.value >= value_of(other)

    def __hash__(self):
        return hash(self.value)

    # Elementary functions. Method names match numpy ufunc names so that
    # object arrays of Duals work with np.sin, np.exp, etc.

    def sin(self):
        return Dual(np.sin(self.value), np.cos(self.value) * self.derivative)

    def cos(self):
        return Dual(np.cos(self.value), -np.sin(self.value) * self.derivative)

    def tan(self):
        t = np.tan(self.value)
        return Dual(t, (1.0 + t * t) * self.derivative)

    def exp(self):
        e = np.exp(self.value)
        return Dual(e, e * self.derivative)

    def log(self):
        v = np.float64(self.value)
        return Dual(np.log(v), self.derivative / v)

    def sqrt(self):
        root = np.sqrt(np.float64(self.value))
        return Dual(root, self.derivative * 0.5 / root)

    def arcsin(self):
        v = np.float64(self.value)
        return Dual(np.arcsin(v), self.derivative / np.sqrt(1.0 - v * v))

    def arccos(self):
        v = np.float64(self.value)
        return Dual(np.arccos(v), -self.derivative / np.sqrt(1.0 - v * v))

    def arctan(self):
        return Dual(np.arctan(self.value),
                    self.derivative / (1.0 + self.value * self.value))

    def sinh(self):
        return Dual(np.sinh(self.value), np.cosh(self.value) * self.derivative)

    def cosh(self):
        return Dual(np.cosh(self.value), np.sinh(self.value) * self.derivative)

    def tanh(self):
        t = np.tanh(self.value)
        return Dual(t, (1.0 - t * t) * self.derivative)

    def absolute(self):
        return abs(self)

    def negative(self):
        return -self

    # numpy interop

    def __array_ufunc__(self, ufunc, method, *inputs, **kwargs):
        """
        Route numpy ufunc calls involving a Dual operand.

        Scalar calls (np.cos(d), np.float64(2.0) * d) dispatch to the Dual
        rules directly. Calls that also involve non-scalar arrays are
        re-issued on object arrays, so numpy applies the Dual rules
        element by element.
        """
        if method != "__call__" or "out" in kwargs:
            return NotImplemented

        if any(isinstance(item, np.ndarray) and item.ndim > 0 for item in inputs):
            return ufunc(*[_as_object_array(item) for item in inputs], **kwargs)

        handler = _UFUNC_HANDLERS.get(ufunc.__name__)
        if handler is None:
            return NotImplemented
        operands = [item.item() if isinstance(item, (np.ndarray, np.generic)) else item
                    for item in inputs]
        return handler(*operands)


def _as_object_array(item: Any) -> Any:
    if isinstance(item, Dual):
        wrapped = np.empty((), dtype=object)
        wrapped[()] = item
        return wrapped
    if isinstance(item, np.ndarray) and item.dtype != object:
        return item.astype(object)
    return item


def value_of(x: Any) -> float:
    """Value component of a Dual, or the number itself for plain reals."""
    if isinstance(x, Dual):
        return x.value
    return x


def derivative_of(x: Any) -> Derivative:
    """Derivative component of a Dual; plain reals are constants."""
    if isinstance(x, Dual):
        return x.derivative
    return 0.0


def _unary(name: str, real_fn: Callable[[float], float]) -> Callable[[Any], Any]:
    def fn(x):
        if isinstance(x, Dual):
            return getattr(x, name)()
        if isinstance(x, np.ndarray):
            return getattr(np, name)(x)
        return real_fn(x)

    fn.__name__ = name
    fn.__doc__ = f"{name} for Duals and plain reals."
    return fn


sin = _unary("sin", np.sin)
cos = _unary("cos", np.cos)
tan = _unary("tan", np.tan)
exp = _unary("exp", np.exp)
log = _unary("log", np.log)
sqrt = _unary("sqrt", np.sqrt)
arcsin = _unary("arcsin", np.arcsin)
arccos = _unary("arccos", np.arccos)
arctan = _unary("arctan", np.arctan)
sinh = _unary("sinh", np.sinh)
cosh = _unary("cosh", np.cosh)
tanh = _unary("tanh", np.tanh)


def arctan2(y: Any, x: Any) -> Any:
    """
    Four-quadrant arctangent of y/x.

    Derivative:
        d atan2(y, x) = (x·dy - y·dx) / (x² + y²)
    """
    if not isinstance(y, Dual) and not isinstance(x, Dual):
        return np.arctan2(y, x)
    yv, xv = value_of(y), value_of(x)
    denom = np.float64(xv * xv + yv * yv)
    return Dual(
        math.atan2(yv, xv),
        (xv * derivative_of(y) - yv * derivative_of(x)) / denom,
    )


def hypot(x: Any, y: Any) -> Any:
    """
    Euclidean norm sqrt(x² + y²).

    Derivative:
        d hypot(x, y) = (x·dx + y·dy) / hypot(x, y)
    """
    if not isinstance(y, Dual) and not isinstance(x, Dual):
        return np.hypot(x, y)
    xv, yv = value_of(x), value_of(y)
    r = np.float64(math.hypot(xv, yv))
    return Dual(r, (xv * derivative_of(x) + yv * derivative_of(y)) / r)


def _lift(x: Any) -> Dual:
    return x if isinstance(x, Dual) else Dual.constant(x)


_UFUNC_HANDLERS: Dict[str, Callable[..., Any]] = {
    "add": lambda a, b: _lift(a) + b,
    "subtract": lambda a, b: _lift(a) - b,
    "multiply": lambda a, b: _lift(a) * b,
    "true_divide": lambda a, b: _lift(a) / b,
    "divide": lambda a, b: _lift(a) / b,
    "power": lambda a, b: _lift(a) ** b,
    "negative": lambda a: -a,
    "positive": lambda a: +a,
    "absolute": abs,
    "sin": sin,
    "cos": cos,
    "tan": tan,
    "exp": exp,
    "log": log,
    "sqrt": sqrt,
    "arcsin": arcsin,
    "arccos": arccos,
    "arctan": arctan,
    "sinh": sinh,
    "cosh": cosh,
    "tanh": tanh,
    "arctan2": arctan2,
    "hypot": hypot,
}
