from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import TypeAlias
from contextlib import contextmanager
from dataclasses import dataclass, field

from expr import (
    Application, Arrow, Bind, BoolType, Boolean, Entry, Eval, Expr, Ground, If,
    IntType, Lambda, Let, Meta, Number, Poly, TApplication, TBind, TBoolean,
    TEval, TIf, TLambda, TLet, TNumber, TPoly, TVar, Type, TypedEntry,
    TypedExpr, Var, type_of, type_repr,
)

Env: TypeAlias = list[tuple[str, Type]]

# ---------- ERRORS ---------- #

class InferError(ValueError):
    """Base class for every failure raised while inferring types."""

class UnboundVariable(InferError):
    def __init__(self, name: str):
        super().__init__(f"Unbound variable '{name}'")
        self.name = name

class UnificationError(InferError):
    def __init__(self, left: Type, right: Type, message: str):
        super().__init__(message)
        self.left = left
        self.right = right

class InfiniteType(UnificationError):
    def __init__(self, meta: Meta, ty: Type):
        names: dict[str, str] = {}
        super().__init__(meta, ty, (
            f"Infinite type: '{type_repr(meta, names)}' occurs in '{type_repr(ty, names)}'"
        ))

class UnificationMismatch(UnificationError):
    def __init__(self, left: Type, right: Type):
        names: dict[str, str] = {}
        super().__init__(left, right, (
            f"Expected '{type_repr(right, names)}', got '{type_repr(left, names)}'"
        ))


# ---------- SUBSTITUTIONS ---------- #

@dataclass(frozen=True)
class Substitution:
    raw: dict[str, Type] = field(default_factory=dict)

    def without(self, names: frozenset[str]) -> 'Substitution':
        return Substitution({k: v for k, v in self.raw.items() if k not in names})

def apply(s: Substitution, t: Type) -> Type:
    if isinstance(t, Ground):
        return t
    if isinstance(t, Meta):
        return s.raw.get(t.id, t)
    if isinstance(t, Arrow):
        return Arrow(apply(s, t.domain), apply(s, t.codomain))
    if isinstance(t, Poly):
        # quantified names are shadowed from the outer substitution
        return Poly(t.bound, apply(s.without(t.bound), t.body))
    assert False, f"Not implemented: {t}"

def apply_all(s: Substitution, ts: list[Type]) -> list[Type]:
    return [apply(s, t) for t in ts]

def apply_env(s: Substitution, env: Env) -> Env:
    return [(name, apply(s, t)) for name, t in env]

def apply_expr(s: Substitution, e: TypedExpr) -> TypedExpr:
    """Apply `s` to every annotation in `e`, descending into all children."""
    if isinstance(e, TVar):
        return TVar(e.name, apply(s, e.ty))
    if isinstance(e, TBoolean):
        return TBoolean(e.value, apply(s, e.ty))
    if isinstance(e, TNumber):
        return TNumber(e.value, apply(s, e.ty))
    if isinstance(e, TIf):
        return TIf(
            apply_expr(s, e.cond),
            apply_expr(s, e.cons),
            apply_expr(s, e.alt),
            apply(s, e.ty),
        )
    if isinstance(e, TLet):
        return TLet(e.name, apply_expr(s, e.bound), apply_expr(s, e.body), apply(s, e.ty))
    if isinstance(e, TLambda):
        return TLambda(e.name, apply(s, e.arg_ty), apply_expr(s, e.body), apply(s, e.ty))
    if isinstance(e, TApplication):
        return TApplication(apply_expr(s, e.fn), apply_expr(s, e.arg), apply(s, e.ty))
    if isinstance(e, TPoly):
        return TPoly(e.bound, apply_expr(s.without(e.bound), e.expr))
    assert False, f"Not implemented: {e}"

def free_meta_vars(t: Type) -> frozenset[str]:
    if isinstance(t, Ground):
        return frozenset()
    if isinstance(t, Meta):
        return frozenset([t.id])
    if isinstance(t, Arrow):
        return free_meta_vars(t.domain) | free_meta_vars(t.codomain)
    if isinstance(t, Poly):
        return free_meta_vars(t.body) - t.bound
    assert False, f"Not implemented: {t}"

def free_meta_vars_all(ts: list[Type]) -> frozenset[str]:
    result: frozenset[str] = frozenset()
    for t in ts:
        result |= free_meta_vars(t)
    return result

def free_meta_vars_env(env: Env) -> frozenset[str]:
    return free_meta_vars_all([t for _, t in env])

def free_meta_vars_expr(e: TypedExpr) -> frozenset[str]:
    # children are consistent with the node's own annotation
    return free_meta_vars(type_of(e))

def compose(s1: Substitution, s2: Substitution) -> Substitution:
    """Merge two substitutions; `s1` wins when both bind the same name.

    The types bound by each side are resolved through the other side, so
    composing substitutions produced one after another stays idempotent.
    """
    left = {k: apply(s2, v) for k, v in s1.raw.items()}
    right = {k: apply(s1, v) for k, v in s2.raw.items()}
    return Substitution({**right, **left})


# ---------- STATE ---------- #

class InferState:
    """The typing environment plus the fresh meta-variable counter.

    The environment is kept newest-first, so a later binding shadows an
    earlier one of the same name.
    """

    def __init__(self, env: Env | None = None, counter: int = 0):
        self.env: Env = list(env or [])
        self.counter = counter

    def lookup(self, name: str) -> Type:
        for bound, t in self.env:
            if bound == name:
                return t
        raise UnboundVariable(name)

    def fresh_meta(self) -> Meta:
        value = self.counter
        self.counter += 1
        return Meta(f"{value}")

    @contextmanager
    def scoped(self) -> Iterator['InferState']:
        snapshot = self.env
        try:
            yield self
        finally:
            self.env = snapshot

    def env_modify(self, f: Callable[[Env], Env]) -> None:
        self.env = f(self.env)

    def replace_env(self, env: Env) -> None:
        self.env = env

    def extend(self, name: str, t: Type) -> None:
        self.replace_env([(name, t), *self.env])


# ---------- UNIFY ---------- #

def occurs_check(name: str, t: Type) -> bool:
    return name in free_meta_vars(t)

def unify(t1: Type, t2: Type) -> Substitution:
    if t1 == t2:
        return Substitution()
    if isinstance(t1, Meta) and occurs_check(t1.id, t2):
        raise InfiniteType(t1, t2)
    if isinstance(t2, Meta) and occurs_check(t2.id, t1):
        raise InfiniteType(t2, t1)
    if isinstance(t1, Meta):
        return Substitution({t1.id: t2})
    if isinstance(t2, Meta):
        return Substitution({t2.id: t1})
    if isinstance(t1, Arrow) and isinstance(t2, Arrow):
        s1 = unify(t1.domain, t2.domain)
        s2 = unify(apply(s1, t1.codomain), apply(s1, t2.codomain))
        return compose(s1, s2)
    raise UnificationMismatch(t1, t2)


# ---------- LET-POLYMORPHISM ---------- #

def generalize(t: Type, state: InferState) -> frozenset[str]:
    return free_meta_vars(t) - free_meta_vars_env(state.env)

def instantiate(t: Type, state: InferState) -> Type:
    if not isinstance(t, Poly):
        return t
    s = Substitution({name: state.fresh_meta() for name in sorted(t.bound)})
    return apply(s, t.body)


# ---------- INFERENCE ---------- #

Inferred: TypeAlias = tuple[Substitution, Type, TypedExpr]

def infer_var(expr: Var, state: InferState) -> Inferred:
    t = instantiate(state.lookup(expr.name), state)
    return Substitution(), t, TVar(expr.name, t)

def infer_boolean(expr: Boolean, state: InferState) -> Inferred:
    return Substitution(), BoolType, TBoolean(expr.value, BoolType)

def infer_number(expr: Number, state: InferState) -> Inferred:
    return Substitution(), IntType, TNumber(expr.value, IntType)

def infer_lambda(expr: Lambda, state: InferState) -> Inferred:
    arg_type = state.fresh_meta()
    with state.scoped():
        state.extend(expr.name, arg_type)
        s, body_type, body = infer_inner(expr.body, state)
    arg_type = apply(s, arg_type)
    t = Arrow(arg_type, body_type)
    return s, t, TLambda(expr.name, arg_type, body, t)

def infer_application(expr: Application, state: InferState) -> Inferred:
    s, fn_type, fn = infer_inner(expr.fn, state)
    state.env_modify(lambda env: apply_env(s, env))
    arg_s, arg_type, arg = infer_inner(expr.arg, state)
    result = state.fresh_meta()
    u = unify(apply(arg_s, fn_type), Arrow(arg_type, result))
    t = apply(u, result)
    return compose(s, compose(arg_s, u)), t, TApplication(fn, arg, t)

def infer_let(expr: Let, state: InferState) -> Inferred:
    s, bound_type, bound = infer_inner(expr.bound, state)
    state.env_modify(lambda env: apply_env(s, env))
    names = generalize(bound_type, state)
    with state.scoped():
        state.extend(expr.name, Poly(names, bound_type))
        body_s, body_type, body = infer_inner(expr.body, state)
    return compose(s, body_s), body_type, TLet(expr.name, TPoly(names, bound), body, body_type)

def infer_if(expr: If, state: InferState) -> Inferred:
    s, cond_type, cond = infer_inner(expr.cond, state)
    state.env_modify(lambda env: apply_env(s, env))
    cons_s, cons_type, cons = infer_inner(expr.cons, state)
    s = compose(s, cons_s)
    state.env_modify(lambda env: apply_env(s, env))
    alt_s, alt_type, alt = infer_inner(expr.alt, state)
    s = compose(s, alt_s)
    s = compose(s, unify(apply(s, cond_type), BoolType))
    s = compose(s, unify(apply(s, cons_type), apply(s, alt_type)))
    t = apply(s, cons_type)
    return s, t, TIf(cond, cons, alt, t)

EXPR_TO_INFER: dict[type, Callable[..., Inferred]] = {
    Var: infer_var,
    Boolean: infer_boolean,
    Number: infer_number,
    Lambda: infer_lambda,
    Application: infer_application,
    Let: infer_let,
    If: infer_if,
}

def infer_inner(expr: Expr, state: InferState) -> Inferred:
    if type(expr) in EXPR_TO_INFER:
        return EXPR_TO_INFER[type(expr)](expr, state)
    assert False, f"Not implemented: {expr}"

def infer(expr: Expr, state: InferState | None = None) -> tuple[TypedExpr, Type]:
    """Infer the principal type of `expr`, returning it with the annotated tree.

    Raises an `InferError` subclass on the first failure.
    """
    if state is None:
        state = InferState()
    s, t, typed = infer_inner(expr, state)
    state.env_modify(lambda env: apply_env(s, env))
    return apply_expr(s, typed), apply(s, t)

def infer_program(entries: list[Entry | Expr], state: InferState | None = None) -> list[TypedEntry]:
    """Infer a sequence of top-level entries sharing one environment.

    Each `Bind` is generalized and stays visible to the entries after it.
    """
    if state is None:
        state = InferState()
    typed: list[TypedEntry] = []
    for entry in entries:
        if isinstance(entry, Bind):
            expr, t = infer(entry.expr, state)
            names = generalize(t, state)
            state.extend(entry.name, Poly(names, t))
            typed.append(TBind(entry.name, TPoly(names, expr)))
        elif isinstance(entry, Eval):
            expr, _ = infer(entry.expr, state)
            typed.append(TEval(expr))
        else:
            expr, _ = infer(entry, state)
            typed.append(TEval(expr))
    return typed


# ---------- CONSTRAINTS ---------- #

Constraint: TypeAlias = tuple[Type, Type]

def generate_constraints(expr: TypedExpr) -> list[Constraint]:
    """Rebuild the equalities an annotated tree must satisfy.

    Every pair is structurally equal for a tree produced by `infer`.
    """
    if isinstance(expr, (TVar, TNumber, TBoolean)):
        return []
    if isinstance(expr, TIf):
        return [
            (type_of(expr.cond), BoolType),
            (type_of(expr.cons), expr.ty),
            (type_of(expr.alt), expr.ty),
            *generate_constraints(expr.cond),
            *generate_constraints(expr.cons),
            *generate_constraints(expr.alt),
        ]
    if isinstance(expr, TLet):
        return [
            (type_of(expr.body), expr.ty),
            *generate_constraints(expr.bound),
            *generate_constraints(expr.body),
        ]
    if isinstance(expr, TLambda):
        return [(Arrow(expr.arg_ty, type_of(expr.body)), expr.ty), *generate_constraints(expr.body)]
    if isinstance(expr, TApplication):
        return [
            (type_of(expr.fn), Arrow(type_of(expr.arg), expr.ty)),
            *generate_constraints(expr.fn),
            *generate_constraints(expr.arg),
        ]
    if isinstance(expr, TPoly):
        return generate_constraints(expr.expr)
    assert False, f"Not implemented: {expr}"

def unsatisfied_constraints(expr: TypedExpr) -> list[Constraint]:
    return [(left, right) for left, right in generate_constraints(expr) if left != right]
