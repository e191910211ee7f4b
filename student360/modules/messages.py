"""
User-facing labels and messages (Arabic locale).

Kept in one place so services return the same wording the pages display.
"""

ROLE_LABELS = {
    'teacher': 'المعلم',
    'admin': 'المدير',
    'counselor': 'التوجيه الطلابي',
    'parent': 'ولي الأمر',
}

ROLE_DEFAULT_NAMES = {
    'admin': 'أ/ مدير المدرسة',
    'teacher': 'أ/ أحمد',
    'counselor': 'أ/ توجيه طلابي',
    'parent': 'ولي أمر',
}

DEFAULT_DISPLAY_NAME = 'مستخدم'

# Authentication error codes follow the identity provider's 'auth/<reason>' scheme
AUTH_ERROR_MESSAGES = {
    'auth/invalid-credential': 'بيانات الدخول غير صحيحة.',
    'auth/wrong-password': 'كلمة المرور غير صحيحة.',
    'auth/user-not-found': 'المستخدم غير موجود.',
    'auth/invalid-email': 'البريد الإلكتروني غير صحيح.',
    'auth/too-many-requests': 'محاولات كثيرة. انتظر قليلًا ثم جرّب.',
    'auth/admin-restricted-operation': 'عملية مرفوضة. (تأكد أن هذا تسجيل دخول وليس إنشاء مستخدم).',
}
AUTH_ERROR_UNKNOWN = 'تعذر تسجيل الدخول. راجع السجل للتفاصيل.'

LOGIN_EMAIL_REQUIRED = 'فضلاً اكتب البريد الإلكتروني.'
LOGIN_PASSWORD_REQUIRED = 'فضلاً اكتب كلمة المرور.'

UNKNOWN_ROLE_MESSAGE = (
    'تم تسجيل الدخول بنجاح، لكن لم يتم العثور على Role لهذا المستخدم.\n'
    'تأكد أن لديك Document داخل /users/{UID} يحتوي على الحقل role.'
)

CAMERA_PERMISSION_DENIED = 'تم رفض إذن الكاميرا. اسمح بالكاميرا ثم جرّب.'
CAMERA_NOT_FOUND = 'لا توجد كاميرا متاحة على هذا الجهاز.'
CAMERA_BUSY = 'الكاميرا مستخدمة في تطبيق آخر. اقفله ثم جرّب.'
CAMERA_OTHER = 'تعذّر تشغيل الكاميرا. ({name}) {message}'

INVALID_QR_PAYLOAD = 'QR غير صالح. لازم يحتوي StudentID فقط مثل: S-10025 أو 10025'
STUDENT_NOT_FOUND = 'لم يتم العثور على طالب بهذا الـ ID: {student_id} داخل المدرسة.'
STUDENT_LOAD_FAILED = 'حصل خطأ أثناء جلب بيانات الطالب.'

ADMIN_ONLY_CREATE = 'صلاحيات غير كافية. إضافة الطلاب للمدير فقط.'
ADMIN_ONLY_IMPORT = 'صلاحيات غير كافية. الاستيراد للمدير فقط.'
INVALID_STUDENT_ID = 'اكتب StudentID صحيح (مثال: S-10025 أو 10025).'
STUDENT_NAME_REQUIRED = 'اكتب اسم الطالب.'
STUDENT_EXISTS = '⚠️ هذا الطالب موجود بالفعل (StudentID: {student_id}).'
STUDENT_CREATED = '✅ تم إضافة الطالب. الآن يمكنك توليد QR للـ StudentID: {student_id}'
STUDENT_CREATE_FAILED = '❌ حصل خطأ أثناء إضافة الطالب.'
STUDENT_LIST_FAILED = 'تعذر تحميل قائمة الطلاب.'

CSV_NO_VALID_ROWS = 'ملف CSV لا يحتوي بيانات صحيحة. لازم أعمدة: studentId,name,grade,section'
CSV_IMPORTED = '✅ تم استيراد {count} طالب. (الحد {limit} دفعة واحدة)'
CSV_IMPORT_FAILED = '❌ فشل استيراد CSV.'

QR_GENERATION_FAILED = 'تعذر توليد QR.'

NOTE_ROLE_FORBIDDEN = 'هذا الدور لا يضيف ملاحظات حالياً.'
NOTE_STUDENT_REQUIRED = 'لا يمكن إضافة ملاحظة بدون طالب صحيح.'
NOTE_COMMENT_REQUIRED = 'اكتب الملاحظة/التفاصيل.'
NOTE_INVALID_TYPE = 'نوع الملاحظة غير معروف.'
NOTE_SAVED = '✅ تم حفظ الملاحظة.'
NOTE_SAVE_FAILED = '❌ فشل حفظ الملاحظة.'

# Dashboard cards per role; 'action' names a page the card navigates to
ROLE_CARDS = {
    'teacher': [
        {'key': 'scan', 'title': 'مسح QR', 'desc': 'امسح كود الطالب لفتح صفحته وتسجيل ملاحظة.',
         'cta': 'ابدأ المسح', 'action': 'scanner'},
    ],
    'admin': [
        {'key': 'students', 'title': 'إدارة الطلاب', 'desc': 'إضافة/استيراد الطلاب + توليد QR + طباعة.',
         'cta': 'فتح', 'action': 'admin_students'},
        {'key': 'scan', 'title': 'مسح QR (اختياري)', 'desc': 'لو المدير احتاج يمسح QR بنفسه.',
         'cta': 'فتح', 'action': 'scanner'},
    ],
    'counselor': [
        {'key': 'scan', 'title': 'مسح QR', 'desc': 'امسح كود الطالب لفتح صفحته وتسجيل متابعة.',
         'cta': 'ابدأ المسح', 'action': 'scanner'},
    ],
    'parent': [
        {'key': 'children', 'title': 'أبنائي (قريبًا)', 'desc': 'ربط الأبناء وعرض السجل.',
         'cta': 'قريبًا', 'action': None},
    ],
}


def auth_error_message(code: str) -> str:
    """Map an identity-provider error code to a user message."""
    code = str(code or '')
    for known_code, message in AUTH_ERROR_MESSAGES.items():
        if known_code in code:
            return message
    return AUTH_ERROR_UNKNOWN
