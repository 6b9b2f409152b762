from typing import TypeAlias
from dataclasses import dataclass


# ---------- UNTYPED EXPRESSIONS ---------- #

Expr: TypeAlias = "Var | Boolean | Number | If | Let | Lambda | Application"
Entry: TypeAlias = "Bind | Eval"

@dataclass(frozen=True)
class Var:
    name: str

@dataclass(frozen=True)
class Boolean:
    value: bool

@dataclass(frozen=True)
class Number:
    value: float

@dataclass(frozen=True)
class If:
    cond: Expr
    cons: Expr
    alt: Expr

@dataclass(frozen=True)
class Let:
    name: str
    bound: Expr
    body: Expr

@dataclass(frozen=True)
class Lambda:
    name: str
    body: Expr

@dataclass(frozen=True)
class Application:
    fn: Expr
    arg: Expr

@dataclass(frozen=True)
class Bind:
    """Top-level `let name = expr`, visible to every later entry."""
    name: str
    expr: Expr

@dataclass(frozen=True)
class Eval:
    expr: Expr


# ---------- TYPES ---------- #

Type: TypeAlias = "Ground | Arrow | Meta | Poly"

@dataclass(frozen=True)
class Ground:
    name: str

@dataclass(frozen=True)
class Arrow:
    domain: Type
    codomain: Type

@dataclass(frozen=True)
class Meta:
    id: str

@dataclass(frozen=True)
class Poly:
    bound: frozenset[str]
    body: Type

IntType = Ground("Int")
BoolType = Ground("Bool")


# ---------- TYPED EXPRESSIONS ---------- #

TypedExpr: TypeAlias = "TVar | TBoolean | TNumber | TIf | TLet | TLambda | TApplication | TPoly"
TypedEntry: TypeAlias = "TBind | TEval"

@dataclass(frozen=True)
class TVar:
    name: str
    ty: Type

@dataclass(frozen=True)
class TBoolean:
    value: bool
    ty: Type

@dataclass(frozen=True)
class TNumber:
    value: float
    ty: Type

@dataclass(frozen=True)
class TIf:
    cond: TypedExpr
    cons: TypedExpr
    alt: TypedExpr
    ty: Type

@dataclass(frozen=True)
class TLet:
    name: str
    bound: TypedExpr
    body: TypedExpr
    ty: Type

@dataclass(frozen=True)
class TLambda:
    name: str
    arg_ty: Type
    body: TypedExpr
    ty: Type

@dataclass(frozen=True)
class TApplication:
    fn: TypedExpr
    arg: TypedExpr
    ty: Type

@dataclass(frozen=True)
class TPoly:
    """A let-bound definition whose type was generalized over `bound`."""
    bound: frozenset[str]
    expr: TypedExpr

@dataclass(frozen=True)
class TBind:
    name: str
    expr: TPoly

@dataclass(frozen=True)
class TEval:
    expr: TypedExpr

def type_of(expr: TypedExpr) -> Type:
    if isinstance(expr, TPoly):
        return Poly(expr.bound, type_of(expr.expr))
    return expr.ty


# ---------- PRINTING ---------- #

def var_repr(index: int) -> str:
    letters = "abcdefghijklmnopqrstuvwxyz"
    mod = index % 26
    num = index // 26 or ""
    return f"{letters[mod]}{num}"

def type_repr(t: Type, names: dict[str, str] | None = None) -> str:
    """Render a type, renaming meta-variables to letters in order of appearance.

    Pass the same `names` dict to several calls to keep the letters consistent
    between them.
    """
    if names is None:
        names = {}
    if isinstance(t, Ground):
        return t.name
    if isinstance(t, Meta):
        if t.id not in names:
            names[t.id] = var_repr(len(names))
        return names[t.id]
    if isinstance(t, Arrow):
        domain = type_repr(t.domain, names)
        if isinstance(t.domain, (Arrow, Poly)):
            domain = f"({domain})"
        return f"{domain} -> {type_repr(t.codomain, names)}"
    if isinstance(t, Poly):
        if not t.bound:
            return type_repr(t.body, names)
        bound = " ".join(type_repr(Meta(b), names) for b in sorted(t.bound))
        return f"forall {bound}. {type_repr(t.body, names)}"
    assert False, f"Not implemented: {t}"

def number_repr(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return str(value)

def atom_repr(e: Expr) -> str:
    if isinstance(e, (Var, Boolean, Number)):
        return expr_repr(e)
    return f"({expr_repr(e)})"

def expr_repr(e: Expr) -> str:
    if isinstance(e, Var):
        return e.name
    if isinstance(e, Boolean):
        return "true" if e.value else "false"
    if isinstance(e, Number):
        return number_repr(e.value)
    if isinstance(e, If):
        return f"if {expr_repr(e.cond)} then {expr_repr(e.cons)} else {expr_repr(e.alt)}"
    if isinstance(e, Let):
        return f"let {e.name} = {expr_repr(e.bound)} in {expr_repr(e.body)}"
    if isinstance(e, Lambda):
        return f"\\{e.name}. {expr_repr(e.body)}"
    if isinstance(e, Application):
        fn = expr_repr(e.fn) if isinstance(e.fn, Application) else atom_repr(e.fn)
        return f"{fn} {atom_repr(e.arg)}"
    assert False, f"Not implemented: {e}"

def texpr_repr(e: TypedExpr, names: dict[str, str] | None = None) -> str:
    if names is None:
        names = {}
    if isinstance(e, TPoly):
        return texpr_repr(e.expr, names)
    ty = type_repr(e.ty, names)
    if isinstance(e, TVar):
        inner = e.name
    elif isinstance(e, TBoolean):
        inner = "true" if e.value else "false"
    elif isinstance(e, TNumber):
        inner = number_repr(e.value)
    elif isinstance(e, TIf):
        inner = (f"if {texpr_repr(e.cond, names)} then {texpr_repr(e.cons, names)}"
                 f" else {texpr_repr(e.alt, names)}")
    elif isinstance(e, TLet):
        inner = f"let {e.name} = {texpr_repr(e.bound, names)} in {texpr_repr(e.body, names)}"
    elif isinstance(e, TLambda):
        inner = f"\\{e.name}: {type_repr(e.arg_ty, names)}. {texpr_repr(e.body, names)}"
    elif isinstance(e, TApplication):
        inner = f"{texpr_repr(e.fn, names)} {texpr_repr(e.arg, names)}"
    else:
        assert False, f"Not implemented: {e}"
    return f"({inner} : {ty})"

def strip_types(e: TypedExpr) -> Expr:
    if isinstance(e, TPoly):
        return strip_types(e.expr)
    if isinstance(e, TVar):
        return Var(e.name)
    if isinstance(e, TBoolean):
        return Boolean(e.value)
    if isinstance(e, TNumber):
        return Number(e.value)
    if isinstance(e, TIf):
        return If(strip_types(e.cond), strip_types(e.cons), strip_types(e.alt))
    if isinstance(e, TLet):
        return Let(e.name, strip_types(e.bound), strip_types(e.body))
    if isinstance(e, TLambda):
        return Lambda(e.name, strip_types(e.body))
    if isinstance(e, TApplication):
        return Application(strip_types(e.fn), strip_types(e.arg))
    assert False, f"Not implemented: {e}"

def program_repr(entries: list[Entry]) -> str:
    lines = []
    for entry in entries:
        if isinstance(entry, Bind):
            lines.append(f"let {entry.name} = {expr_repr(entry.expr)}")
        else:
            lines.append(expr_repr(entry.expr))
    return "\n".join(lines)

def tprogram_repr(entries: list[TypedEntry], annotate: bool = False) -> str:
    lines = []
    for entry in entries:
        if annotate:
            rendered = texpr_repr(entry.expr)
            if isinstance(entry, TBind):
                rendered = f"let {entry.name} = {rendered}"
        elif isinstance(entry, TBind):
            rendered = f"let {entry.name} : {type_repr(type_of(entry.expr))}"
        else:
            rendered = f"{expr_repr(strip_types(entry.expr))} : {type_repr(type_of(entry.expr))}"
        lines.append(rendered)
    return "\n".join(lines)
