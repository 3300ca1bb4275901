from __future__ import annotations

from typing import Any, Dict


SYSTEM_PROMPT = (
    "You are a meticulous finance assistant that extracts transactions from bank and credit card "
    "statement text with ZERO tolerance for digit errors. Copy every amount digit-for-digit from the "
    "line it appears on; never round, re-scale, truncate or invent a figure. Return structured JSON only. "
    "Do not include any personally identifiable information (PII) and do not extract account summaries."
)


RULEBOOK = """\
Rules:
- Output an "expenses" array that follows the order of the numbered lines. Do not sort or group.
- Include "line_index" for each transaction: the NUMBER (1-based) of the line that contains the amount.
- Use ISO dates YYYY-MM-DD. If a line shows only day and month, take the year from the statement period
  or header. If two dates appear (transaction date and posting date), use the LATER/POSTED date.
  Do NOT put any dates in the note.
- Currency codes must be ISO 4217 (e.g., CAD, USD, INR, GBP, EUR).
- If merchant or payment method is missing, omit the field. Category is optional; guess only if obvious.
- Note: a short, human-friendly purpose (e.g., "Car rental", "Dinner at hotel"). No dates, no reference numbers.
- Signs: purchases, withdrawals and charges are positive; refunds, credits, reversals, cashbacks and
  payments received are negative. Set "direction" to "debit" or "credit" whenever the statement makes it
  clear (separate debit/credit columns, CR/DR markers). There can be MANY negative transactions; do not drop them.
- Include very small amounts. Only extract transactions explicitly present in the lines; do not infer,
  summarize or aggregate.
- If the same date/merchant/amount appears on separate numbered lines, output SEPARATE objects for each
  occurrence with its own line_index. Do NOT deduplicate or merge.
- Lines may contain "[REDACTED]" placeholders where private data was removed. Ignore them.
- Columns are separated by " | " when the statement had a wide gap between them.

How to recognise the real amount:
- A transaction amount ALWAYS has exactly two decimal digits (880.00, 1,103.38, 0.99).
- A reference, authorization or trace code is a run of digits (often with letters) and NO decimal point,
  usually right after a dash or a label such as "Ref", "Auth" or "Trace". Never use it as the amount.
- A running balance is usually the LAST and LARGEST number on the line. Never report it as the amount.
- Foreign currency purchases show the original foreign amount and an exchange rate before the amount
  actually charged. Ignore both; report the final charged amount in the statement currency.

Worked examples:
1. Line: "16 Apr ATMwithdrawal - TQ242986 880.00 1,103.38"
   -> amount 880.00, merchant "ATM withdrawal", occurred_on <statement year>-04-16.
   NOT 88.00 (dropped digit), NOT 242986 (reference code), NOT 1103.38 (running balance).
2. Line: "03 May POS Purchase COSTCO WHOLESALE #512 - 40455123 145.67 2,331.09"
   -> amount 145.67, merchant "COSTCO WHOLESALE". "#512" is a store number and 40455123 a reference.
3. Line: "JUN 28 | JUN 30 | UBER TRIP HELP.UBER.COM | USD 25.00 @ 1.366000 | 34.15"
   -> amount 34.15 (charged in the statement currency). NOT 25.00 (foreign amount), NOT 1.366000 (rate).
4. Line: "12 Jul REFUND AMAZON.CA MKTPLACE 23.99 CR 1,210.44"
   -> amount -23.99, direction "credit", merchant "AMAZON.CA MKTPLACE".
5. Line: "AUG 02 | AUG 03 | AUTOMATIC PAYMENT -THANK YOU | -500.00"
   -> amount -500.00, direction "credit", note "Card payment".
6. Line: "05 Sep Interac e-Transfer 100.00 | 645.12" and line "06 Sep Interac e-Transfer 100.00 | 545.12"
   -> TWO objects, each 100.00, with their own line_index.
7. Line: "Opening balance 1,983.38" or "Total purchases 2,340.17"
   -> not a transaction; output nothing for it.
"""


EXPENSES_JSON_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "expenses": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "amount": {"type": "number"},
                    "currency": {"type": "string"},
                    "direction": {"type": "string", "enum": ["debit", "credit"]},
                    "merchant": {"type": "string"},
                    "payment_method": {"type": "string"},
                    "note": {"type": "string"},
                    "occurred_on": {"type": "string"},
                    "category": {"type": "string"},
                    "line_index": {"type": "integer"},
                },
                "required": ["amount", "currency", "occurred_on", "line_index"],
            },
        }
    },
    "required": ["expenses"],
}


def build_user_prompt(numbered_text: str) -> str:
    return (
        "The input below is a list of NUMBERED LINES from a bank/credit card statement. "
        "Extract transactions strictly from these lines.\n\n"
        f"{numbered_text}\n\n"
        f"{RULEBOOK}\n"
        "Output must conform to the provided JSON schema."
    )


def response_format() -> Dict[str, Any]:
    return {
        "type": "json_schema",
        "json_schema": {"name": "expenses_schema", "schema": EXPENSES_JSON_SCHEMA},
    }
