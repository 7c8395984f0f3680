"""Тексты сообщений бота."""
from schoolbot.utils.enums import UserRole

UNKNOWN_COMMAND = "Неизвестная команда. Введите /help для списка команд."
NO_PERMISSION = "У вас нет прав для выполнения этой команды."
FALLBACK = "Используйте команды для взаимодействия с ботом. Введите /help для списка команд."
GENERIC_ERROR = "Произошла ошибка. Попробуйте позже."
CALLBACK_ERROR = "Произошла ошибка"
REGISTER_FIRST = "Сначала пройдите регистрацию: /register (ФИО и телефон)."
CHOOSE_WITH_BUTTONS = "Выберите класс с помощью кнопок выше или отправьте любую команду для отмены."
NO_CLASSES = "У вас нет классов."

ASK_FULL_NAME = "Введите ваше ФИО (Фамилия Имя Отчество):"
INVALID_FULL_NAME = "Пожалуйста, введите ваше ФИО (Через пробел)."
ASK_PHONE = "Теперь введите ваш номер телефона (например: +7 999 123 45 67):"
INVALID_PHONE = "Номер телефона не может быть пустым. Введите номер телефона:"
REGISTRATION_DONE = (
    "Регистрация завершена! Теперь подайте заявку в класс: /requestclass <название класса>."
)
ALREADY_MANAGER = "Вы уже обладаете правами администратора/модератора."

ASK_CLASS_NAME_CREATE = "Введите название класса:"
ASK_CLASS_NAME_REQUEST = "Введите название класса, к которому хотите присоединиться:"
CLASS_NAME_TAKEN = "Класс с таким названием уже существует. Введите другое название:"
CLASS_NOT_FOUND_BY_NAME = "Класс с таким названием не найден. Проверьте название и попробуйте снова."
DUPLICATE_REQUEST = "Заявка на этот класс уже отправлена и находится в ожидании."
ALREADY_MEMBER = "Вы уже состоите в этом классе."

ASK_NEWS_CLASS = "Выберите класс для публикации новости:"
ASK_NEWS_TITLE = "Введите заголовок:"
EMPTY_NEWS_TITLE = "Заголовок не может быть пустым. Введите заголовок:"
ASK_NEWS_CONTENT = "Введите текст новости:"
EMPTY_NEWS_CONTENT = "Текст новости не может быть пустым. Введите текст:"
NEWS_QUEUED = "✅ Новость поставлена в очередь на отправку!"

ASK_MODERATOR_CLASS = "Выберите класс:"
ASK_MODERATOR_ADD_ID = "Введите Telegram ID пользователя:"
ASK_MODERATOR_REMOVE_ID = "Введите Telegram ID модератора:"

ROLE_TITLES = {
    UserRole.ADMIN: "Админ",
    UserRole.MODERATOR: "Модератор",
    UserRole.PARENT: "Родитель",
    UserRole.UNVERIFIED: "Не подтвержден",
}

_PARENT_COMMANDS = (
    "/viewnews [класс] - новости класса\n"
    "/viewreports [класс] - отчеты класса\n"
    "/myclass - мои классы\n"
    "/requestclass - заявка на вступление в класс"
)

_MODERATOR_COMMANDS = (
    "/createnews - опубликовать новость\n"
    "/viewnews [класс] - новости класса\n"
    "/viewreports [класс] - отчеты класса\n"
    "/myclass - мои классы\n"
    "/adminpanel - ссылка на админ-панель"
)

_ADMIN_COMMANDS = (
    "/createclass - создать класс\n"
    "/createnews - опубликовать новость\n"
    "/viewnews [класс] - новости класса\n"
    "/viewreports [класс] - отчеты класса\n"
    "/myclass - мои классы\n"
    "/verifications - заявки родителей\n"
    "/parents - участники класса\n"
    "/moderators - модераторы класса\n"
    "/addmoderator - назначить модератора\n"
    "/removemoderator - снять модератора\n"
    "/deleteclass - удалить класс\n"
    "/adminpanel - ссылка на админ-панель"
)

_GUEST_COMMANDS = (
    "/register - регистрация (ФИО и телефон)\n"
    "/requestclass - заявка на вступление в класс\n"
    "/createclass - создать свой класс\n"
    "/myclass - мои классы"
)


def commands_for(user) -> str:
    """Список команд для роли пользователя."""
    if user.role == UserRole.ADMIN:
        return _ADMIN_COMMANDS
    if user.role == UserRole.MODERATOR:
        return _MODERATOR_COMMANDS
    if user.role == UserRole.PARENT and user.is_verified:
        return _PARENT_COMMANDS
    return _GUEST_COMMANDS


def start_text(user) -> str:
    """Приветствие /start."""
    name = user.full_name or user.first_name or "пользователь"
    if user.role == UserRole.ADMIN:
        intro = "Вы администратор. Управляйте классами, новостями и заявками родителей."
    elif user.role == UserRole.MODERATOR:
        intro = "Вы модератор класса. Публикуйте новости и обрабатывайте заявки."
    elif user.role == UserRole.PARENT and user.is_verified:
        intro = "Вы подтвержденный родитель. Здесь появляются новости и отчеты вашего класса."
    elif user.is_registered:
        intro = "Регистрация пройдена. Подайте заявку в класс: /requestclass."
    else:
        intro = "Для начала пройдите регистрацию: /register."
    return f"Здравствуйте, {name}!\n\n{intro}\n\nДоступные команды:\n{commands_for(user)}"


def help_text(user) -> str:
    """Справка /help."""
    return f"Доступные команды:\n{commands_for(user)}\n\n/help - эта справка"
