"""Seed categories used when a category slot has never been written."""

from fintrack.models.finance import Category, CategoryIcon


DEFAULT_EXPENSE_CATEGORIES = (
    Category(name="Ăn uống", icon=CategoryIcon.FOOD),
    Category(name="Di chuyển", icon=CategoryIcon.TRANSPORT),
    Category(name="Nhà ở", icon=CategoryIcon.HOUSING),
    Category(name="Tiện ích", icon=CategoryIcon.UTILITIES),
    Category(name="Hóa đơn & Dịch vụ", icon=CategoryIcon.DEFAULT),
    Category(name="Mua sắm", icon=CategoryIcon.SHOPPING),
    Category(name="Giải trí", icon=CategoryIcon.ENTERTAINMENT),
    Category(name="Sức khỏe", icon=CategoryIcon.HEALTH),
    Category(name="Giáo dục", icon=CategoryIcon.EDUCATION),
    Category(name="Gia đình & Con cái", icon=CategoryIcon.DEFAULT),
    Category(name="Đầu tư & Tiết kiệm", icon=CategoryIcon.INVESTMENT),
    Category(name="Du lịch", icon=CategoryIcon.DEFAULT),
    Category(name="Quà tặng & Từ thiện", icon=CategoryIcon.GIFT),
    Category(name="Khác", icon=CategoryIcon.DEFAULT),
)

DEFAULT_INCOME_CATEGORIES = (
    Category(name="Lương", icon=CategoryIcon.SALARY),
    Category(name="Thưởng", icon=CategoryIcon.BONUS),
    Category(name="Kinh doanh", icon=CategoryIcon.DEFAULT),
    Category(name="Đầu tư", icon=CategoryIcon.INVESTMENT),
    Category(name="Làm thêm", icon=CategoryIcon.DEFAULT),
    Category(name="Quà tặng", icon=CategoryIcon.GIFT),
    Category(name="Khác", icon=CategoryIcon.DEFAULT),
)
