"""
Telegram bot handler for the manual notification trigger.

Serves ``/start``, ``/help`` and ``/notify``. The last one re-sends the
livestream announcement for the channel's newest video.
"""

from typing import Optional

from telegram import BotCommand, Update
from telegram.constants import ParseMode
from telegram.ext import Application, CommandHandler, ContextTypes

from ..services.telegram_authorizer import TelegramAuthorizer
from ..utils.logging import get_logger
from .feed_controller import FeedIngestionController

logger = get_logger("telegram_bot_handler")

START_TEXT = (
    "👋 Merhaba! Ben canlı yayın bildirim botuyum.\n\n"
    'YouTube kanalındaki yeni videoları takip ederim ve "#live" etiketi '
    "içeren videolar hakkında bildirim gönderirim.\n\n"
    "Komutlar:\n"
    "/start - Botu başlat\n"
    "/help - Yardım bilgileri\n"
    "/notify - Son canlı yayın bildirimini gönder"
)

HELP_TEXT = (
    "🔹 <b>Yardım Bilgileri</b>\n\n"
    "Bu bot, YouTube kanalındaki yeni videoları izler ve "
    '"#live" etiketi içeren videolar hakkında Telegram kanalına bildirim '
    "gönderir.\n\n"
    "<b>Komutlar:</b>\n"
    "/start - Botu başlat\n"
    "/help - Bu yardım mesajını göster\n"
    "/notify - Son canlı yayın bildirimini manuel olarak gönder\n\n"
    "Sorularınız için lütfen yönetici ile iletişime geçin."
)

BOT_COMMANDS = [
    BotCommand("start", "Botu başlat"),
    BotCommand("help", "Yardım bilgileri"),
    BotCommand("notify", "Son canlı yayın bildirimini gönder"),
]

NOT_AUTHORIZED_TEXT = "⚠️ Bu komutu kullanma yetkiniz yok."
RATE_LIMITED_TEXT = "⚠️ Çok fazla istek gönderdiniz. Lütfen biraz bekleyin."
NO_VIDEO_TEXT = "⚠️ Kanalda video bulunamadı."
NOTIFY_ERROR_TEXT = "⚠️ Bildirim gönderilirken bir hata oluştu."
NOTHING_SENT_TEXT = "⚠️ Bildirim gönderilmedi. Video #live etiketi içermiyor olabilir."


class TelegramBotHandler:
    """Handles Telegram bot polling and the bot's commands."""

    def __init__(
        self,
        bot_token: str,
        controller: Optional[FeedIngestionController],
        channel_id: str,
        authorizer: TelegramAuthorizer,
        application: Optional[Application] = None,
    ):
        """
        Initialize Telegram bot handler.

        Args:
            bot_token: Telegram bot token
            controller: Pipeline used by ``/notify``; may be attached later
            channel_id: Channel whose newest video ``/notify`` announces
            authorizer: Decides who may run ``/notify``
            application: Prebuilt telegram.ext application, mainly for tests
        """
        self.controller = controller
        self.channel_id = channel_id
        self.authorizer = authorizer
        self.application = (
            application or Application.builder().token(bot_token).build()
        )
        self.is_polling = False

        self._setup_handlers()

        logger.info("Telegram bot handler initialized")

    @property
    def bot(self):
        return self.application.bot

    def _setup_handlers(self) -> None:
        """Register command handlers."""
        self.application.add_handler(CommandHandler("start", self._handle_start))
        self.application.add_handler(CommandHandler("help", self._handle_help))
        self.application.add_handler(CommandHandler("notify", self._handle_notify))
        self.application.add_error_handler(self._handle_error)

    async def initialize(self) -> None:
        """Initialize the application so its bot can send messages."""
        await self.application.initialize()

    async def start_polling(self) -> None:
        """Register the command menu and start polling for updates."""
        if self.is_polling:
            logger.warning("Bot is already polling")
            return

        try:
            await self.bot.set_my_commands(BOT_COMMANDS)
            logger.info("Bot commands set up successfully")
        except Exception as e:
            logger.error(f"Error setting up bot commands: {e}")

        await self.application.start()
        await self.application.updater.start_polling()
        self.is_polling = True
        logger.info("Telegram bot started successfully")

    async def stop(self) -> None:
        """Stop polling and shut the application down."""
        try:
            if self.is_polling:
                logger.info("Stopping Telegram bot polling...")
                if self.application.updater and self.application.updater.running:
                    await self.application.updater.stop()
                await self.application.stop()
                self.is_polling = False

            await self.application.shutdown()
            logger.info("Telegram bot stopped")

        except Exception as e:
            logger.error(f"Error stopping Telegram bot: {e}")

    async def _handle_start(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /start command."""
        if update.effective_message:
            await update.effective_message.reply_text(START_TEXT)

    async def _handle_help(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /help command."""
        if update.effective_message:
            await update.effective_message.reply_text(
                HELP_TEXT, parse_mode=ParseMode.HTML
            )

    async def _handle_notify(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /notify command."""
        message = update.effective_message
        if message is None:
            return

        user_id = str(update.effective_user.id) if update.effective_user else None
        auth_result = await self.authorizer.is_authorized(user_id)
        if not auth_result.authorized:
            if user_id and self.authorizer.is_user_authorized(user_id):
                await message.reply_text(RATE_LIMITED_TEXT)
            else:
                await message.reply_text(NOT_AUTHORIZED_TEXT)
            return

        if self.controller is None:
            logger.error("/notify received before the feed controller was attached")
            await message.reply_text(NOTIFY_ERROR_TEXT)
            return

        try:
            latest = await self.controller.latest_item(self.channel_id)
            if latest is None:
                await message.reply_text(NO_VIDEO_TEXT)
                return

            await message.reply_text(
                f'🔔 "{latest.title}" videosu için bildirim gönderiliyor...'
            )

            report = await self.controller.notify_item(latest.id)

            if report.succeeded > 0:
                await message.reply_text(
                    f"✅ Bildirim {report.succeeded} kanala başarıyla gönderildi."
                )

            if report.failed > 0:
                await message.reply_text(
                    f"⚠️ {report.failed} kanala bildirim gönderilemedi."
                )

            if len(report) == 0:
                await message.reply_text(NOTHING_SENT_TEXT)

        except Exception as e:
            logger.error(f"Error in /notify command: {e}", exc_info=True)
            await message.reply_text(NOTIFY_ERROR_TEXT)

    async def _handle_error(
        self, update: object, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Log errors raised inside update handlers."""
        logger.error(f"Telegram bot error: {context.error}")
