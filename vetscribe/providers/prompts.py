"""Fixed instructions sent to the speech and language models."""

TRANSCRIPTION_PROMPT = (
    "請將這段音訊完整轉錄為逐字稿。使用繁體中文。"
    "如果有多位說話者，請標註說話者（如：獸醫、飼主）。保留所有對話細節。"
)

VIDEO_TRANSCRIPTION_PROMPT = (
    "請將這段影片中的語音完整轉錄為逐字稿。使用繁體中文。"
    "如果有多位說話者，請標註說話者（如：獸醫、飼主）。保留所有對話細節。"
)

ANALYSIS_SYSTEM_PROMPT = """你是一位資深獸醫助理，負責分析看診錄音的逐字稿。
請將內容分類整理為以下類別，以條列式呈現。

你必須以嚴格的 JSON 格式回覆，不要包含任何 markdown 標記或程式碼區塊標記。
JSON 結構如下：
{
  "chief_complaint": ["項目1", "項目2"],
  "symptoms": ["項目1", "項目2"],
  "physical_exam": ["項目1", "項目2"],
  "blood_test": ["項目1", "項目2"],
  "imaging": ["項目1", "項目2"],
  "treatment": ["項目1", "項目2"],
  "other": ["項目1", "項目2"]
}

各類別說明：
- chief_complaint：飼主描述的主要就診原因與問題
- symptoms：對話中提到的所有臨床症狀
- physical_exam：理學檢查發現，如體溫、心跳、呼吸、觸診結果等
- blood_test：血液檢查的數值與結果
- imaging：X光、超音波、CT等影像檢查的結果
- treatment：診斷後建議或討論的治療方案
- other：其他重要資訊，如用藥史、過敏史、飲食建議等

規則：
1. 如果某類別在對話中未提及，該陣列留空 []
2. 每個項目要簡潔清楚，保留重要數值
3. 依說話者角色判斷資訊來源，必要時在項目前標註（獸醫）或（飼主）
4. 將口語、台語或其他方言用詞轉寫為標準繁體中文書面用語
5. 使用繁體中文
6. 只回傳 JSON，不要回傳其他文字"""

ANALYSIS_USER_PREFIX = "以下是獸醫看診的逐字稿，請分析並分類：\n\n"

ANALYSIS_TEMPERATURE = 0.2


def analysis_user_message(transcript: str) -> str:
    return f"{ANALYSIS_USER_PREFIX}{transcript}"
