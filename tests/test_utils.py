from datetime import date

import pytest

import utils


@pytest.mark.parametrize(
    "preset,expected",
    [
        ("current_month", (date(2024, 3, 1), date(2024, 3, 31))),
        ("last_month", (date(2024, 2, 1), date(2024, 2, 29))),
        ("last_3_months", (date(2024, 1, 1), date(2024, 3, 31))),
        ("last_6_months", (date(2023, 10, 1), date(2024, 3, 31))),
        ("year_to_date", (date(2024, 1, 1), date(2024, 3, 31))),
    ],
)
def test_period_range(preset, expected):
    assert utils.period_range(preset, date(2024, 3, 15)) == expected


def test_period_range_rejects_unknown_preset():
    with pytest.raises(ValueError):
        utils.period_range("forever", date(2024, 3, 15))


def test_last_month_in_january_wraps_year():
    assert utils.period_range("last_month", date(2024, 1, 10)) == (date(2023, 12, 1), date(2023, 12, 31))


def test_add_months_clamps_day():
    assert utils.add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert utils.add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
    assert utils.add_months(date(2023, 11, 15), 3) == date(2024, 2, 15)


def test_clamp_due_date():
    assert utils.clamp_due_date(2023, 2, 31) == date(2023, 2, 28)
    assert utils.clamp_due_date(2024, 4, 31) == date(2024, 4, 30)
    assert utils.clamp_due_date(2024, 4, 0) == date(2024, 4, 1)
    assert utils.clamp_due_date(2024, 4, 15) == date(2024, 4, 15)


def test_iter_months_covers_partial_months():
    months = list(utils.iter_months(date(2023, 11, 20), date(2024, 1, 5)))

    assert months == [date(2023, 11, 1), date(2023, 12, 1), date(2024, 1, 1)]


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("[Aluguel] Galpão centro", ("Aluguel", "Galpão centro")),
        ("[Utilidades]", ("Utilidades", "")),
        ("Compra avulsa", ("Geral", "Compra avulsa")),
        ("[] sem tag", ("Geral", "sem tag")),
        ("", ("Geral", "")),
    ],
)
def test_parse_category(raw, expected):
    assert utils.parse_category(raw) == expected


def test_format_category_is_the_inverse_of_parse():
    assert utils.format_category("Aluguel", "Galpão") == "[Aluguel] Galpão"
    assert utils.format_category("Aluguel", "") == "[Aluguel]"


def test_format_currency():
    assert utils.format_currency(1234.56) == "R$ 1.234,56"
    assert utils.format_currency(150) == "R$ 150,00"
    assert utils.format_currency(-5) == "-R$ 5,00"
    assert utils.format_currency(1000000) == "R$ 1.000.000,00"


def test_normalize_phone():
    assert utils.normalize_phone("(11) 99999-0001") == "5511999990001"
    assert utils.normalize_phone("5511999990001") == "5511999990001"
    assert utils.normalize_phone("+55 11 99999-0001") == "5511999990001"
    assert utils.normalize_phone("") == ""


def test_validate_student_inputs():
    assert utils.validate_student_inputs("Ana", "11999990001", 10) == []
    assert utils.validate_student_inputs("Ana", "", 10) == []
    errors = utils.validate_student_inputs(" ", "1234", 32)
    assert "Full name is required." in errors
    assert any("area code" in e for e in errors)
    assert "Due day must be between 1 and 31." in errors


def test_validate_plan_inputs():
    assert utils.validate_plan_inputs("Mensal", "150", "3") == []
    assert utils.validate_plan_inputs("Mensal", "abc", "-1") == [
        "Price must be numeric.",
        "Weekly limit cannot be negative.",
    ]


def test_validate_fixed_expense_inputs():
    assert utils.validate_fixed_expense_inputs("Aluguel", "Galpão", "3500", "5") == []
    errors = utils.validate_fixed_expense_inputs("", "", "0", "x")
    assert errors == [
        "Category is required.",
        "Description is required.",
        "Amount must be > 0.",
        "Due day must be a whole number.",
    ]


def test_validate_transaction_inputs():
    assert utils.validate_transaction_inputs("income", "PDV", "10", "paid") == []
    errors = utils.validate_transaction_inputs("refund", "PDV", "10", "late")
    assert len(errors) == 2


def test_transactions_to_csv_bytes_has_header_for_empty_list():
    assert utils.transactions_to_csv_bytes([]).decode("utf-8").strip() == (
        "id,type,category,description,amount,status,due_date,created_at,projected"
    )
