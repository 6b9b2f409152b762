import pytest

from expr import (
    Application, Arrow, Bind, BoolType, Boolean, If, IntType, Lambda, Let, Meta,
    Eval, Number, Poly, TApplication, TBind, TEval, TIf, TLambda, TNumber, TPoly,
    TVar, Var, expr_repr, program_repr, strip_types, texpr_repr, tprogram_repr,
    type_of, type_repr, var_repr,
)

@pytest.mark.parametrize("t,expected", [
    (IntType, "Int"),
    (Arrow(IntType, Arrow(BoolType, IntType)), "Int -> Bool -> Int"),
    (Arrow(Arrow(Meta("5"), Meta("7")), Meta("5")), "(a -> b) -> a"),
    (Poly(frozenset({"3"}), Arrow(Meta("3"), Meta("3"))), "forall a. a -> a"),
    (Poly(frozenset(), IntType), "Int"),
])
def test_type_repr(t, expected):
    assert type_repr(t) == expected

def test_type_repr_shares_names():
    names: dict[str, str] = {}
    assert type_repr(Meta("9"), names) == "a"
    assert type_repr(Arrow(Meta("4"), Meta("9")), names) == "b -> a"

def test_var_repr_wraps_alphabet():
    assert var_repr(0) == "a"
    assert var_repr(25) == "z"
    assert var_repr(26) == "a1"

def test_type_of_reads_annotation():
    e = TIf(TVar("c", BoolType), TNumber(1.0, IntType), TNumber(2.0, IntType), IntType)
    assert type_of(e) == IntType

def test_type_of_poly():
    e = TPoly(frozenset({"0"}), TLambda("x", Meta("0"), TVar("x", Meta("0")), Arrow(Meta("0"), Meta("0"))))
    assert type_of(e) == Poly(frozenset({"0"}), Arrow(Meta("0"), Meta("0")))

def test_expr_repr():
    e = Let("f", Lambda("x", Var("x")), If(Boolean(True), Application(Var("f"), Number(1.0)), Number(2.5)))
    assert expr_repr(e) == "let f = \\x. x in if true then f 1 else 2.5"
    assert expr_repr(Application(Application(Var("f"), Var("x")), Lambda("y", Var("y")))) == "f x (\\y. y)"

def test_texpr_repr_and_strip():
    e = TApplication(
        TLambda("x", IntType, TVar("x", IntType), Arrow(IntType, IntType)),
        TNumber(5.0, IntType),
        IntType,
    )
    assert texpr_repr(e) == "((\\x: Int. (x : Int) : Int -> Int) (5 : Int) : Int)"
    assert strip_types(e) == Application(Lambda("x", Var("x")), Number(5.0))

def test_program_reprs():
    assert program_repr([Bind("n", Number(1.0)), Eval(Var("n"))]) == "let n = 1\nn"
    ident = TLambda("x", Meta("0"), TVar("x", Meta("0")), Arrow(Meta("0"), Meta("0")))
    typed = [
        TBind("id", TPoly(frozenset({"0"}), ident)),
        TEval(TApplication(TVar("id", Arrow(BoolType, BoolType)), TVar("b", BoolType), BoolType)),
    ]
    assert tprogram_repr(typed) == "let id : forall a. a -> a\nid b : Bool"
    assert tprogram_repr(typed[:1], annotate=True) == "let id = (\\x: a. (x : a) : a -> a)"
