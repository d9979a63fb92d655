"""
AI Financial Advisor

DESIGN DECISION: The advisor is an OPAQUE, FALLIBLE external service.
It reads a snapshot of the user's data and returns text or proposed
values. It never holds a store and never writes to one.

CRITICAL BOUNDARIES:

1. ADVICE:
   - CAN: Explain and suggest, using the snapshot it was given
   - CANNOT: Change any financial data

2. BILL SCAN:
   - CAN: Propose description, amount and category from a receipt
   - CANNOT: Save anything - the user confirms first (see BillScanFlow)
   - CANNOT: Fill in fields it could not read

3. FORECAST:
   - CAN: Predict the next 30 days of income and expenses
   - MUST: Work only from the transactions it was given

FAILURE POLICY: Any failed call or unparseable answer raises
AdvisorServiceError. Nothing is retried automatically; the caller may
simply call again with the same input.
"""

import json
from datetime import date, timedelta
from typing import Any, Iterable, Optional

import google.generativeai as genai
from pydantic import ValidationError

from fintrack.config import GeminiSettings, get_settings
from fintrack.models.finance import Transaction
from fintrack.models.insights import ForecastResult, ScannedBill


NO_RECENT_DATA_ANALYSIS = "Không có dữ liệu giao dịch gần đây để phân tích."


class AdvisorServiceError(Exception):
    """An advisor call failed or returned something unusable."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service} failed: {message}")


def _transaction_payload(transactions: Iterable[Transaction]) -> list[dict]:
    return [
        t.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"receipt_image"})
        for t in transactions
    ]


class FinancialAdvisorAgent:
    """
    Gemini-backed advisor.

    Args:
        settings: Gemini settings. Defaults to the configured ones.
        model: Pre-built model for free-text answers. Anything with an
               async generate_content_async(contents) works.
        json_model: Pre-built model for JSON answers. Defaults to `model`
                    when that is given.
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Any = None,
        json_model: Any = None,
    ):
        app = get_settings().app
        self._lookback_days = app.forecast_lookback_days
        self._horizon_days = app.forecast_horizon_days

        if model is None:
            self._settings = settings or get_settings().gemini
            self._configure_genai()
        else:
            self._settings = settings
            self._model = model
            self._json_model = json_model or model

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )
        self._json_model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": 0.1,  # Low temperature for consistent extraction
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            }
        )

    async def _generate(self, service: str, model: Any, contents: Any) -> str:
        try:
            response = await model.generate_content_async(contents)
            text = response.text
        except Exception as e:
            raise AdvisorServiceError(service, str(e)) from e

        if not text or not text.strip():
            raise AdvisorServiceError(service, "empty response")
        return text.strip()

    @staticmethod
    def _parse_json(service: str, text: str) -> dict:
        start = text.find("{")
        end = text.rfind("}") + 1
        if start < 0 or end <= start:
            raise AdvisorServiceError(service, "response contained no JSON object")
        try:
            data = json.loads(text[start:end])
        except json.JSONDecodeError as e:
            raise AdvisorServiceError(service, f"invalid JSON ({e})") from e
        if not isinstance(data, dict):
            raise AdvisorServiceError(service, "response JSON is not an object")
        return data

    # -------------------------------------------------------------------------
    # Advice
    # -------------------------------------------------------------------------

    async def get_advice(self, question: str, financial_data: dict) -> str:
        """
        Answer a question about the user's finances, in markdown.

        Args:
            question: The user's question, as typed
            financial_data: JSON-ready snapshot (see FinancialStore.snapshot)
        """
        currency = financial_data.get("currency", "VND")
        prompt = f"""**System Instruction:**
You are an expert financial advisor named 'Fin-Bot'. Your goal is to provide helpful, clear, and encouraging financial advice to the user.
- Analyze the user's financial data provided below.
- Answer the user's question directly and concisely.
- Use the provided data to support your advice with specific examples.
- All monetary values are in {currency}. Format large numbers with separators for readability.
- Your tone should be professional yet friendly. Avoid jargon.
- Structure your response using markdown for better readability (headings, lists, bold text).
- Do not lecture or criticize the user's spending habits. Instead, focus on positive suggestions and potential improvements.

**User's Financial Data (JSON):**
```json
{json.dumps(financial_data, ensure_ascii=False, indent=2)}
```

**User's Question:**
"{question}"

**Your Analysis and Advice:**"""

        return await self._generate("advice", self._model, prompt)

    # -------------------------------------------------------------------------
    # Bill scan
    # -------------------------------------------------------------------------

    async def analyze_bill_image(
        self,
        image_bytes: bytes,
        mime_type: str,
        categories: list[str],
    ) -> ScannedBill:
        """
        Read description, amount and category off a receipt image.

        Fields the model could not determine are left as None.
        """
        prompt = f"""Analyze this receipt/bill image and extract the following information in JSON format:
1. "description": A short, suitable description for the transaction (e.g., "Grocery shopping", "Dinner at restaurant"). Infer this from the store name or items.
2. "amount": The final total amount paid. It must be a number, without any currency symbols or commas.
3. "category": Suggest a relevant expense category from this list: {json.dumps(categories, ensure_ascii=False)}.

If any field cannot be determined, omit it from the JSON. The response must be a valid JSON object."""

        contents = [
            {"mime_type": mime_type, "data": image_bytes},
            prompt,
        ]
        text = await self._generate("bill_scan", self._json_model, contents)
        data = self._parse_json("bill_scan", text)

        try:
            return ScannedBill.model_validate(data)
        except ValidationError as e:
            raise AdvisorServiceError("bill_scan", f"unexpected fields ({e})") from e

    # -------------------------------------------------------------------------
    # Forecast
    # -------------------------------------------------------------------------

    def recent_transactions(
        self,
        transactions: Iterable[Transaction],
        today: date,
    ) -> list[Transaction]:
        """Transactions inside the forecast lookback window."""
        since = today - timedelta(days=self._lookback_days)
        return [t for t in transactions if t.date >= since]

    async def forecast(
        self,
        transactions: Iterable[Transaction],
        today: Optional[date] = None,
    ) -> ForecastResult:
        """
        Predict income, expenses and savings for the coming period.

        With no transactions in the lookback window the model is not
        called and an all-zero forecast is returned.
        """
        today = today or date.today()
        recent = self.recent_transactions(transactions, today)
        if not recent:
            return ForecastResult(
                predicted_income=0,
                predicted_expenses=0,
                predicted_savings=0,
                analysis=NO_RECENT_DATA_ANALYSIS,
            )

        prompt = f"""**System Instruction:**
You are a financial analyst AI. Your task is to predict cash flow for the next {self._horizon_days} days based on the user's past transaction history provided in JSON format.

**User's Transaction History (last {self._lookback_days} days):**
```json
{json.dumps(_transaction_payload(recent), ensure_ascii=False, indent=2)}
```

**Task:**
Based on the provided transaction history, analyze spending and income patterns. Then, predict the total income, total expenses, and the resulting net savings for the **next {self._horizon_days} days**. Provide a brief, insightful analysis (2-3 sentences) of the forecast, mentioning any notable patterns or suggestions.

**Output Format:**
Respond with ONLY a JSON object in this exact format:
{{"predictedIncome": 0, "predictedExpenses": 0, "predictedSavings": 0, "analysis": "..."}}"""

        text = await self._generate("forecast", self._json_model, prompt)
        data = self._parse_json("forecast", text)

        try:
            return ForecastResult.model_validate(data)
        except ValidationError as e:
            raise AdvisorServiceError("forecast", f"incomplete forecast ({e})") from e
