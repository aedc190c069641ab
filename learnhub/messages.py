"""User-facing flash messages keyed by locale."""
from learnhub.config import DEFAULT_LOCALE

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "lesson_not_found": "Lesson not found.",
        "test_not_found": "This lesson has no test.",
        "attempt_not_found": "Test attempt not found.",
        "unauthorized_access": "You are not allowed to access this test attempt.",
        "continuing_ongoing_test": "You have a test in progress. Continuing where you left off.",
        "test_auto_submitted": "Your previous attempt ran out of time and was submitted automatically.",
        "max_attempts_reached": "You have used all {max_attempts} attempts for this test.",
        "attempt_started": "Attempt {attempt_number} started. Good luck!",
        "draft_saved": "Your answers were saved as a draft.",
        "already_submitted": "This attempt has already been submitted.",
        "time_expired": "Time is up. Your saved answers were submitted.",
        "passed": "Congratulations, you passed with {score}/{total} correct answers.",
        "failed": (
            "You did not pass: {score}/{total} correct answers. "
            "Remaining attempts: {remaining_attempts}."
        ),
        "validation_failed": "Your answers could not be saved: {errors}",
        "unexpected": "An unexpected error occurred. Please try again.",
    },
    "vi": {
        "lesson_not_found": "Không tìm thấy bài học.",
        "test_not_found": "Bài học này không có bài kiểm tra.",
        "attempt_not_found": "Không tìm thấy lượt làm bài.",
        "unauthorized_access": "Bạn không có quyền truy cập lượt làm bài này.",
        "continuing_ongoing_test": "Bạn đang có bài kiểm tra dở dang. Tiếp tục làm bài.",
        "test_auto_submitted": "Lượt làm bài trước đã hết giờ và được nộp tự động.",
        "max_attempts_reached": "Bạn đã dùng hết {max_attempts} lượt làm bài.",
        "attempt_started": "Bắt đầu lượt làm bài thứ {attempt_number}. Chúc may mắn!",
        "draft_saved": "Đã lưu nháp câu trả lời.",
        "already_submitted": "Lượt làm bài này đã được nộp.",
        "time_expired": "Hết giờ. Câu trả lời đã lưu được nộp tự động.",
        "passed": "Chúc mừng, bạn đã đạt với {score}/{total} câu đúng.",
        "failed": "Bạn chưa đạt: {score}/{total} câu đúng. Số lượt còn lại: {remaining_attempts}.",
        "validation_failed": "Không thể lưu câu trả lời: {errors}",
        "unexpected": "Đã xảy ra lỗi không mong muốn. Vui lòng thử lại.",
    },
}


def translate(key: str, locale: str | None = None, **kwargs: object) -> str:
    """Look up a message, falling back to the default locale."""
    fallback = MESSAGES.get(DEFAULT_LOCALE) or MESSAGES["en"]
    catalog = MESSAGES.get(locale or DEFAULT_LOCALE) or fallback
    template = catalog.get(key) or fallback.get(key, key)
    return template.format(**kwargs)


def supported_locales() -> list[str]:
    return sorted(MESSAGES)
