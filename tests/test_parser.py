"""Unit tests for parser module."""

import unittest

from stemlab_pkg.parser import (
    Call,
    Chain,
    Degrees,
    Name,
    Number,
    Power,
    UnaryOp,
    format_number,
    format_result,
    format_superscript,
    formula_identifiers,
    is_balanced,
    parse_formula,
    prettify_formula,
    tokenize,
)
from stemlab_pkg.types import ParseError, ValidationError


class TestTokenize(unittest.TestCase):
    """Test the tokenizer."""

    def kinds(self, source):
        return [token.kind for token in tokenize(source)]

    def test_basic_tokens(self):
        self.assertEqual(
            self.kinds("v0^2 + 1.5"),
            ["NAME", "OP", "NUMBER", "OP", "NUMBER", "EOF"],
        )

    def test_number_forms(self):
        values = [t.value for t in tokenize("3 .5 2. 1e3 2.5E-2") if t.kind == "NUMBER"]
        self.assertEqual(values, [3.0, 0.5, 2.0, 1000.0, 0.025])

    def test_double_star_is_power(self):
        tokens = tokenize("x**2")
        self.assertEqual(tokens[1].text, "^")
        self.assertEqual((tokens[1].start, tokens[1].end), (1, 3))

    def test_pi_symbol_and_degree_sign(self):
        self.assertEqual(self.kinds("π*30°"), ["NAME", "OP", "NUMBER", "DEGREE", "EOF"])

    def test_unicode_operators(self):
        texts = [t.text for t in tokenize("a × b ÷ c − d")]
        self.assertEqual(texts, ["a", "*", "b", "/", "c", "-", "d", ""])

    def test_superscript_digits_are_display_only(self):
        # prettify_formula writes v0²; formulas themselves use ^
        with self.assertRaises(ParseError) as ctx:
            tokenize("x²")
        self.assertEqual(ctx.exception.position, 1)

    def test_unexpected_character(self):
        with self.assertRaises(ParseError) as ctx:
            tokenize("a $ b")
        self.assertEqual(ctx.exception.position, 2)

    def test_token_spans(self):
        tokens = tokenize("  length")
        self.assertEqual((tokens[0].start, tokens[0].end), (2, 8))


class TestParseStructure(unittest.TestCase):
    """Test the shape of parsed trees."""

    def test_number_and_name(self):
        self.assertEqual(parse_formula("42"), Number(42.0))
        self.assertEqual(parse_formula("voltage"), Name("voltage"))

    def test_sum_is_flat_chain(self):
        tree = parse_formula("a - b + c")
        self.assertIsInstance(tree, Chain)
        self.assertEqual(tree.head, Name("a"))
        self.assertEqual(tree.tail, (("-", Name("b")), ("+", Name("c"))))

    def test_product_binds_tighter_than_sum(self):
        tree = parse_formula("a + b * c")
        self.assertEqual(tree.tail[0][1], Chain(Name("b"), (("*", Name("c")),)))

    def test_power_is_right_associative(self):
        tree = parse_formula("2^3^2")
        self.assertEqual(tree, Power(Number(2.0), Power(Number(3.0), Number(2.0))))

    def test_unary_minus_binds_looser_than_power(self):
        tree = parse_formula("-x^2")
        self.assertEqual(tree, UnaryOp("-", Power(Name("x"), Number(2.0))))

    def test_negative_exponent(self):
        tree = parse_formula("2^-1")
        self.assertEqual(tree, Power(Number(2.0), UnaryOp("-", Number(1.0))))

    def test_parentheses_group(self):
        tree = parse_formula("(a + b) * c")
        self.assertIsInstance(tree, Chain)
        self.assertEqual(tree.tail, (("*", Name("c")),))
        self.assertIsInstance(tree.head, Chain)

    def test_call_arguments(self):
        tree = parse_formula("pow(x, 2)")
        self.assertEqual(tree.name, "pow")
        self.assertEqual(tree.args, (Name("x"), Number(2.0)))
        self.assertFalse(tree.degrees)

    def test_degree_marker(self):
        self.assertEqual(parse_formula("30°"), Degrees(Number(30.0)))

    def test_whitespace_ignored(self):
        self.assertEqual(parse_formula(" a+b "), parse_formula("a + b"))


class TestAngleMarking(unittest.TestCase):
    """Trig calls whose argument text looks like an angle are marked."""

    def marked(self, formula):
        tree = parse_formula(formula)
        assert isinstance(tree, Call)
        return tree.degrees

    def test_theta_argument(self):
        self.assertTrue(self.marked("sin(theta)"))
        self.assertTrue(self.marked("sin(2*theta)"))

    def test_angle_substring(self):
        self.assertTrue(self.marked("cos(angle)"))
        self.assertTrue(self.marked("tan(launchangle/2)"))

    def test_degree_sign(self):
        self.assertTrue(self.marked("sin(30°)"))

    def test_plain_argument(self):
        self.assertFalse(self.marked("sin(x)"))

    def test_match_is_case_sensitive(self):
        self.assertFalse(self.marked("sin(Theta)"))

    def test_only_trig_functions_marked(self):
        self.assertFalse(self.marked("sqrt(theta)"))

    def test_argument_text_kept(self):
        self.assertEqual(parse_formula("sin( 2*theta )").argument_text, "2*theta")


class TestParseErrors(unittest.TestCase):
    """Test failures raised by parse_formula."""

    def assert_code(self, formula, code, exc=ParseError):
        with self.assertRaises(exc) as ctx:
            parse_formula(formula)
        self.assertEqual(ctx.exception.code, code)

    def test_empty(self):
        self.assert_code("", "EMPTY_INPUT", ValidationError)
        self.assert_code("   ", "EMPTY_INPUT", ValidationError)

    def test_unbalanced(self):
        self.assert_code("(", "SYNTAX_ERROR")
        self.assert_code("a)", "SYNTAX_ERROR")

    def test_dangling_operator(self):
        self.assert_code("2 +", "SYNTAX_ERROR")
        self.assert_code("* 2", "SYNTAX_ERROR")

    def test_adjacent_operands(self):
        # No implicit multiplication
        self.assert_code("2 x", "SYNTAX_ERROR")
        self.assert_code("2(3)", "SYNTAX_ERROR")

    def test_unknown_function(self):
        self.assert_code("log(x)", "UNKNOWN_FUNCTION")
        self.assert_code("__import__(x)", "UNKNOWN_FUNCTION")

    def test_wrong_arity(self):
        self.assert_code("sin(1, 2)", "ARITY_ERROR")
        self.assert_code("pow(2)", "ARITY_ERROR")
        self.assert_code("sqrt()", "ARITY_ERROR")

    def test_limits(self):
        from stemlab_pkg.config import MAX_EXPRESSION_DEPTH, MAX_INPUT_LENGTH

        self.assert_code("1" * (MAX_INPUT_LENGTH + 1), "TOO_LONG", ValidationError)
        depth = MAX_EXPRESSION_DEPTH + 5
        self.assert_code("(" * depth + "1" + ")" * depth, "TOO_DEEP", ValidationError)
        self.assert_code("-" * depth + "1", "TOO_DEEP", ValidationError)

    def test_position_in_message(self):
        with self.assertRaises(ParseError) as ctx:
            parse_formula("1 + #")
        self.assertIn("position 4", str(ctx.exception))


class TestFormatting(unittest.TestCase):
    """Test display helpers."""

    def test_format_result_two_decimals(self):
        self.assertEqual(format_result(40.81632653), "40.82")
        self.assertEqual(format_result(0.3), "0.30")

    def test_format_result_precision(self):
        self.assertEqual(format_result(2.00708992, 3), "2.007")
        self.assertEqual(format_result(1800, 0), "1800")

    def test_format_result_negative_zero(self):
        self.assertEqual(format_result(-0.001), "0.00")

    def test_format_number(self):
        self.assertEqual(format_number(1 / 3, 3), "0.333")
        self.assertEqual(format_number("abc"), "abc")

    def test_superscripts(self):
        self.assertEqual(format_superscript("v0^2"), "v0²")
        self.assertEqual(format_superscript("x**-3"), "x⁻³")
        self.assertEqual(format_superscript("x^2.5"), "x^2.5")

    def test_prettify(self):
        self.assertEqual(prettify_formula("2*pi*sqrt(length/gravity)"), "2×π×√(length/gravity)")

    def test_is_balanced(self):
        self.assertEqual(is_balanced("(1+2)"), (True, None))
        self.assertEqual(is_balanced("((1+2)"), (False, 0))
        self.assertEqual(is_balanced("1+2)"), (False, 3))


class TestIdentifiers(unittest.TestCase):
    def test_order_of_first_appearance(self):
        self.assertEqual(
            formula_identifiers("(v0^2 * sin(2*theta)) / g + v0"), ["v0", "theta", "g"]
        )

    def test_constants_included_functions_excluded(self):
        self.assertEqual(formula_identifiers("2*pi*sqrt(length)"), ["pi", "length"])


if __name__ == "__main__":
    unittest.main()
