"""AI service constants and prompts.

Centralized configuration for the tutor bot: retrieval limits, grading
thresholds, completion budgets, system prompts and user-facing messages.
"""

# Retrieval
EMBEDDING_CANDIDATE_LIMIT = 100
FALLBACK_SCORE = 0.5
DEFAULT_KNOWLEDGE_LIMIT = 5
STUDY_TOOL_KNOWLEDGE_LIMIT = 10

# Student context
WEAK_AREA_THRESHOLD = 70

# Completion budgets (max_completion_tokens)
STANDARD_MAX_COMPLETION_TOKENS = 1000
REASONING_MAX_COMPLETION_TOKENS = 4000
EXAM_QUESTION_MAX_TOKENS = 500
ANSWER_EVALUATION_MAX_TOKENS = 300
STUDY_PLAN_MAX_TOKENS = 1500

# Model name prefixes that spend hidden reasoning tokens before visible output
REASONING_MODEL_PREFIXES = ("gpt-5", "o1", "o3", "o4")

# Answer evaluation
DEFAULT_EVALUATION_SCORE = 75

# Syllabus import
SYLLABUS_MIN_CHUNK_LENGTH = 50
SYLLABUS_TITLE_MAX_LENGTH = 100

# System prompt for the student tutor persona
TUTOR_SYSTEM_PROMPT = """אתה עוזר אישי חכם לתלמידים. תפקידך:
1. לעזור לתלמידים להתקדם בתוכנית הלימודים
2. לענות על שאלות על בסיס הידע שסופק
3. לתת ייעוץ לימודי מותאם אישית על בסיס הציונים וההתקדמות שלהם
4. לבחון תלמידים ולספק משוב
5. לנתח ציונים ולהציע דרכים לשיפור

הוראות:
- השתמש רק במידע מהידע הבסיסי שסופק ובמידע האישי של התלמיד
- אם התלמיד שואל על ציונים, הצג לו את הציונים המדויקים שלו
- אם יש אזורים חלשים (ציונים נמוכים מ-70%), הצע דרכים ספציפיות לשיפור
- תן המלצות מותאמות אישית על בסיס הביצועים שלו
- אם אין מידע רלוונטי, אמור זאת בכנות
- תן תשובות ברורות ומפורטות בעברית
- עודד את התלמידים והציע דרכים לשיפור
- אם זה שאלה על קורס ספציפי, התמקד בקורס הזה

חשוב: השתמש רק במידע האישי של התלמיד המחובר. לעולם אל תציג מידע של תלמיד אחר."""

EXAM_QUESTION_SYSTEM_PROMPT = """אתה מורה מקצועי שיוצר שאלות בחינה. צור שאלה אחת {difficulty} על בסיס החומר הבא.

פורמט התשובה:
שאלה: [השאלה]
תשובה נכונה: [התשובה הנכונה]
הסבר: [הסבר קצר למה זו התשובה הנכונה]"""

ANSWER_EVALUATION_SYSTEM_PROMPT = (
    "אתה מורה שמעריך תשובות תלמידים. תן ציון מ-0 עד 100 ומשוב מפורט בעברית."
)

STUDY_PLAN_SYSTEM_PROMPT = "אתה יועץ לימודי מקצועי. צור תוכנית לימודים מפורטת ויומית בעברית."

DIFFICULTY_LABELS = {
    "easy": "קלה",
    "medium": "בינונית",
    "hard": "קשה",
}

ENROLLMENT_STATUS_LABELS = {
    "pending": "ממתין לאישור",
    "approved": "אושר",
    "enrolled": "רשום",
    "completed": "הושלם",
    "cancelled": "בוטל",
}

EXAM_TYPE_LABELS = {
    "exam": "מבחן",
    "quiz": "בוחן",
    "assignment": "מטלה",
    "project": "פרויקט",
}

UNKNOWN_LABEL = "לא ידוע"

# User-facing messages (never include provider error detail)
MSG_SERVICE_NOT_CONFIGURED = "מצטער, שירות הבינה המלאכותית לא מוגדר כרגע. אנא פנה למנהל המערכת."
MSG_GENERATION_FAILED = "מצטער, אירעה שגיאה ביצירת תשובה. אנא נסה שוב מאוחר יותר."
MSG_RESPONSE_TRUNCATED = "התשובה נחתכה בגלל מגבלת טוקנים. אנא נסה שאלה קצרה יותר או פנה למנהל המערכת."
MSG_EVALUATION_FAILED = "אירעה שגיאה בהערכת התשובה"
MSG_EVALUATION_NOT_CONFIGURED = "שירות הבינה המלאכותית לא מוגדר"
