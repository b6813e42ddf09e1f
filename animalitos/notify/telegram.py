"""
Telegram bot: subscriber registry, chat commands and accuracy alerts.

All HTTP goes through ``transport(method, payload) -> dict`` so the bot can
be driven without the network.
"""
import threading
from datetime import datetime
from typing import Callable, Optional
import pytz
import requests
from animalitos.config import settings, setup_logging, atomic_json_write, safe_json_read
from animalitos.services import current_prediction_view, last_results_view, accuracy_view
from animalitos.worker import utcnow

logger = setup_logging(__name__)

COLOR_EMOJI = {'red': '🔴', 'black': '⚫', 'green': '🟢'}
HIT = {True: '✅', False: '❌', None: '·'}

HELP_TEXT = (
    "<b>Animalitos bot</b>\n\n"
    "/start - subscribe to notifications\n"
    "/predictions - current top 10 and color\n"
    "/last - last 10 results\n"
    "/stats - prediction accuracy\n"
    "/status - last result and current prediction\n"
    "/auto - turn automatic notifications on\n"
    "/autostop or /auto-off - turn automatic notifications off\n"
    "/myid - show your chat id\n"
    "/help - this message"
)

ADMIN_HELP = (
    "\n\n👑 <b>Administrator</b>\n"
    "/users - list subscribers\n"
    "/adduser CHAT_ID - subscribe another chat\n"
    "/setadmin CHAT_ID - hand the administrator role to a subscriber"
)


def _chat_arg(args: list[str]) -> Optional[str]:
    """The single numeric chat id argument of an admin command, or None."""
    if len(args) != 1 or not args[0].lstrip("-").isdigit():
        return None
    return args[0]


def _stamp(now: datetime) -> str:
    local = now.astimezone(pytz.timezone(settings.site_timezone)) if now.tzinfo else now
    return f"⏰ {local.strftime('%d/%m/%Y %I:%M %p')}"


# Formatting helpers


def format_predictions(view: Optional[dict], accuracy: Optional[dict], now: datetime) -> str:
    if not view:
        return "❌ No predictions available right now (insufficient data)"
    lines = ["🎯 <b>CURRENT PREDICTIONS</b>", ""]
    if accuracy and accuracy['status'] == 'ok':
        lines.append(f"📊 <b>Accuracy:</b> {accuracy['combined_accuracy_percent']}%")
    color = view['predicted_color']
    lines.append(f"🎨 <b>Color:</b> {COLOR_EMOJI.get(color['color_category'], '')} "
                 f"{color['color_category'].upper()} ({color['probability_percent']}%)")
    lines += ["", "<b>Top 10:</b>"]
    for i, c in enumerate(view['candidate_set'], 1):
        lines.append(f"{i}. {c['numeric_code']:02d} {c['display_name']} "
                     f"{COLOR_EMOJI.get(c['color_category'], '')} ({c['probability']:.1f}%)")
    lines += ["", _stamp(now)]
    return "\n".join(lines)


def format_last_results(rows: list[dict], now: datetime) -> str:
    if not rows:
        return "❌ No results available right now"
    lines = [f"📊 <b>LAST {len(rows)} RESULTS</b>", ""]
    for i, r in enumerate(rows, 1):
        lines.append(f"{i}. {r['numeric_code']:02d} {r['display_name']} "
                     f"{COLOR_EMOJI.get(r['color_category'], '')} - {r['time_label']}")
    lines += ["", _stamp(now)]
    return "\n".join(lines)


def format_accuracy(view: dict, now: datetime) -> str:
    if view['status'] != 'ok':
        return "📊 Accuracy: insufficient data"
    n = view['sample_size']
    lines = [
        "📊 <b>PREDICTION ACCURACY</b>",
        "",
        f"🦁 <b>Animals:</b> {view['number_accuracy_percent']}% ({view['number_hits']}/{n})",
        f"🎨 <b>Colors:</b> {view['color_accuracy_percent']}% ({view['color_hits']}/{n})",
        f"🎯 <b>Combined:</b> {view['combined_accuracy_percent']}%",
        f"📁 <b>Resolved predictions:</b> {view['total_predictions']}",
        "",
    ]
    for i, det in enumerate(view['details'], 1):
        d = det['draw']
        lines.append(f"{i}. {d['time_label']} {d['numeric_code']:02d} {d['display_name']} "
                     f"{COLOR_EMOJI.get(d['color_category'], '')} "
                     f"animal {HIT[det['number_hit']]} color {HIT[det['color_hit']]}")
    lines += ["", _stamp(now)]
    return "\n".join(lines)


def format_status(rows: list[dict], view: Optional[dict], now: datetime) -> str:
    lines = []
    if rows:
        last = rows[0]
        lines.append(f"🎲 <b>Last result:</b> {last['numeric_code']:02d} {last['display_name']} "
                     f"{COLOR_EMOJI.get(last['color_category'], '')} ({last['time_label']})")
    if view:
        codes = ", ".join(f"{c['numeric_code']:02d}" for c in view['candidate_set'])
        color = view['predicted_color']
        lines.append(f"🔮 <b>Next:</b> {codes}")
        lines.append(f"🎨 <b>Color:</b> {color['color_category'].upper()} ({color['probability_percent']}%)")
    if not lines:
        lines.append("❌ No data yet")
    lines.append(_stamp(now))
    return "\n".join(lines)


def format_users(users: dict[str, dict]) -> str:
    lines = [f"👥 <b>Subscribers:</b> {len(users)}", ""]
    for i, (chat_id, info) in enumerate(users.items(), 1):
        name = f" {info['name']}" if info.get('name') else ""
        crown = " 👑" if info.get('admin') else ""
        lines.append(f"{i}. <code>{chat_id}</code>{name}{crown}")
    return "\n".join(lines)


def format_alert(view: dict, high: bool, now: datetime) -> str:
    title = "🚨 <b>HIGH ACCURACY</b>" if high else "📉 <b>Accuracy dropped</b>"
    return "\n".join([
        title,
        "",
        f"• Animals: <b>{view['number_accuracy_percent']}%</b>",
        f"• Colors: <b>{view['color_accuracy_percent']}%</b>",
        f"• Combined: <b>{view['combined_accuracy_percent']}%</b>",
        "",
        _stamp(now),
    ])


class TelegramNotifier:
    def __init__(self, token: Optional[str] = None, poller=None,
                 users_file: Optional[str] = None,
                 transport: Optional[Callable[[str, dict], dict]] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.token = token or settings.telegram_bot_token
        self.api_url = f"https://api.telegram.org/bot{self.token}"
        self.poller = poller
        self.users_file = users_file or settings.users_file
        self.transport = transport or self._http
        self.clock = clock
        self.users: dict[str, dict] = {}
        self.auto_enabled = False
        self.above_threshold = False
        self.last_auto_at: Optional[datetime] = None
        self.last_welcome: dict[str, datetime] = {}
        self.offset = 0
        self._stop = threading.Event()
        self._load_users()

    def _http(self, method: str, payload: dict) -> dict:
        try:
            response = requests.post(f"{self.api_url}/{method}", json=payload, timeout=settings.request_timeout)
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Telegram {method} failed: {e}")
            return {'ok': False, 'description': str(e)}

    # Subscribers

    def _load_users(self):
        self.users = safe_json_read(self.users_file, default={})
        for chat_id in settings.seed_chat_ids():
            self.users.setdefault(chat_id, {'name': None, 'registered_at': None})

    def _save_users(self) -> bool:
        return atomic_json_write(self.users_file, self.users)

    def register(self, chat_id, user_name: Optional[str] = None) -> bool:
        """Add a subscriber; False when already registered."""
        chat_id = str(chat_id)
        if chat_id in self.users:
            return False
        self.users[chat_id] = {'name': user_name, 'registered_at': self.clock().isoformat()}
        self._save_users()
        logger.info(f"Registered chat {chat_id} ({user_name})")
        return True

    @property
    def admin_id(self) -> Optional[str]:
        return next((chat_id for chat_id, info in self.users.items() if info.get('admin')), None)

    def is_admin(self, chat_id) -> bool:
        return self.admin_id is not None and self.admin_id == str(chat_id)

    def set_admin(self, chat_id):
        """Make a registered chat the only administrator."""
        chat_id = str(chat_id)
        for other, info in self.users.items():
            if other == chat_id:
                info['admin'] = True
            else:
                info.pop('admin', None)
        self._save_users()
        logger.info(f"Chat {chat_id} is now the administrator")

    # Sending

    def send_message(self, chat_id, text: str) -> bool:
        result = self.transport('sendMessage', {'chat_id': str(chat_id), 'text': text, 'parse_mode': 'HTML'})
        if result.get('ok'):
            return True
        logger.error(f"Message to {chat_id} not delivered: {result.get('description')}")
        return False

    def send_to_all(self, text: str) -> int:
        if not self.users:
            logger.warning("No subscribers registered, nothing sent")
            return 0
        sent = sum(1 for chat_id in list(self.users) if self.send_message(chat_id, text))
        logger.info(f"Broadcast delivered to {sent}/{len(self.users)} chats")
        return sent

    # Views

    def _recent(self, n: int = 10):
        return self.poller.live_recent_draws(n) if self.poller else []

    def _accuracy(self) -> dict:
        ctx = self.poller.ctx
        recent = self._recent(settings.accuracy_window)
        with self.poller.lock:
            return accuracy_view(ctx, recent, settings.accuracy_window)

    def _status_text(self) -> str:
        ctx = self.poller.ctx
        with self.poller.lock:
            rows = last_results_view(ctx, ctx.draws, 1)
            view = current_prediction_view(ctx)
        return format_status(rows, view, self.clock())

    # Commands

    def _welcome(self, chat_id, user_name: Optional[str], now: datetime) -> bool:
        chat_id = str(chat_id)
        last = self.last_welcome.get(chat_id)
        if last is not None and (now - last).total_seconds() < settings.welcome_cooldown:
            logger.info(f"Repeated /start from {chat_id} ignored")
            return False
        self.last_welcome[chat_id] = now

        is_new = self.register(chat_id, user_name)
        if self.admin_id is None:
            self.set_admin(chat_id)
        lines = [f"👋 Welcome{', ' + user_name if user_name else ''}!"]
        lines.append("✅ You are now subscribed." if is_new else "✅ Welcome back, you are already subscribed.")
        if self.is_admin(chat_id):
            lines.append("👑 You are the administrator.")
        help_text = HELP_TEXT + (ADMIN_HELP if self.is_admin(chat_id) else "")
        return self.send_message(chat_id, "\n".join(lines) + f"\n\n{help_text}")

    def _add_user(self, chat_id, args: list[str]) -> bool:
        new_id = _chat_arg(args)
        if new_id is None:
            return self.send_message(chat_id, "📝 Usage: <code>/adduser CHAT_ID</code> (digits only)")
        if not self.register(new_id):
            return self.send_message(chat_id, f"⚠️ <code>{new_id}</code> is already registered "
                                              f"({len(self.users)} subscribers)")
        self.send_message(new_id, f"🎉 The administrator subscribed you to Animalitos predictions.\n\n{HELP_TEXT}")
        return self.send_message(chat_id, f"✅ Added <code>{new_id}</code> ({len(self.users)} subscribers)")

    def _transfer_admin(self, chat_id, args: list[str]) -> bool:
        new_id = _chat_arg(args)
        if new_id is None:
            return self.send_message(chat_id, "📝 Usage: <code>/setadmin CHAT_ID</code> (digits only)")
        if new_id not in self.users:
            return self.send_message(chat_id, f"❌ <code>{new_id}</code> is not registered, "
                                              f"it must send /start first")
        self.set_admin(new_id)
        self.send_message(new_id, f"👑 You are now the administrator.{ADMIN_HELP}")
        return self.send_message(chat_id, f"✅ <code>{new_id}</code> is now the administrator")

    def handle_command(self, chat_id, text: str, user_name: Optional[str] = None) -> bool:
        parts = (text or "").strip().split()
        command = parts[0].split("@")[0].lower() if parts else ""
        now = self.clock()

        if command == '/start':
            return self._welcome(chat_id, user_name, now)
        if command == '/help':
            return self.send_message(chat_id, HELP_TEXT + (ADMIN_HELP if self.is_admin(chat_id) else ""))
        if command == '/myid':
            return self.send_message(chat_id, f"🆔 Your chat id: <code>{chat_id}</code>")
        if command in ('/users', '/adduser', '/setadmin'):
            if not self.is_admin(chat_id):
                return self.send_message(chat_id, "🔒 Only the administrator can use this command")
            if command == '/users':
                return self.send_message(chat_id, format_users(self.users))
            if command == '/adduser':
                return self._add_user(chat_id, parts[1:])
            return self._transfer_admin(chat_id, parts[1:])
        if self.poller is None:
            return self.send_message(chat_id, "❌ Server not ready")
        if command == '/auto':
            if self.auto_enabled:
                return self.send_message(chat_id, "🔔 Automatic notifications are already on")
            self.auto_enabled = True
            self.send_message(chat_id, "🔔 Automatic notifications on. Use /autostop to turn them off.")
            return self.send_message(chat_id, self._status_text())
        if command in ('/autostop', '/auto-off'):
            if not self.auto_enabled:
                return self.send_message(chat_id, "🔕 Automatic notifications are already off")
            self.auto_enabled = False
            return self.send_message(chat_id, "🔕 Automatic notifications off. Use /auto to turn them back on.")

        if command == '/predictions':
            accuracy = self._accuracy()
            with self.poller.lock:
                view = current_prediction_view(self.poller.ctx)
            return self.send_message(chat_id, format_predictions(view, accuracy, now))
        if command == '/last':
            recent = self._recent(10)
            with self.poller.lock:
                rows = last_results_view(self.poller.ctx, recent, 10)
            return self.send_message(chat_id, format_last_results(rows, now))
        if command == '/stats':
            return self.send_message(chat_id, format_accuracy(self._accuracy(), now))
        if command == '/status':
            return self.send_message(chat_id, self._status_text())

        return self.send_message(chat_id, "❓ Unknown command. Send /help for the list.")

    def poll_updates(self) -> int:
        """Fetch pending updates once and dispatch their commands."""
        result = self.transport('getUpdates', {'offset': self.offset, 'timeout': 0})
        if not result.get('ok'):
            return 0
        handled = 0
        for update in result.get('result', []):
            self.offset = max(self.offset, update['update_id'] + 1)
            message = update.get('message') or {}
            text = message.get('text', '')
            if not text.startswith('/'):
                continue
            chat = message.get('chat', {})
            sender = message.get('from', {})
            self.handle_command(chat.get('id'), text, sender.get('first_name'))
            handled += 1
        return handled

    def run_polling(self, interval: float = 2.0):
        while not self._stop.is_set():
            self.poll_updates()
            self._stop.wait(interval)

    def start(self) -> threading.Thread:
        self._stop.clear()
        thread = threading.Thread(target=self.run_polling, name="animalitos-telegram", daemon=True)
        thread.start()
        return thread

    def stop(self):
        self._stop.set()

    # Alerts

    def cooldown_elapsed(self, now: datetime) -> bool:
        return self.last_auto_at is None or \
            (now - self.last_auto_at).total_seconds() >= settings.notification_cooldown

    def check_and_notify(self, outcome=None) -> list[str]:
        """Send due notifications after an ingest; returns which ones went out."""
        now = self.clock()
        sent = []
        if self.auto_enabled and self.cooldown_elapsed(now):
            self.send_to_all(self._status_text())
            self.last_auto_at = now
            sent.append('auto')

        view = self._accuracy()
        if view['status'] != 'ok':
            return sent
        above = view['combined_accuracy_percent'] >= settings.accuracy_threshold
        if above and not self.above_threshold:
            self.send_to_all(format_alert(view, True, now))
            sent.append('high')
        elif not above and self.above_threshold:
            self.send_to_all(format_alert(view, False, now))
            sent.append('drop')
        self.above_threshold = above
        return sent

    def broadcast_predictions(self) -> tuple[int, str]:
        """Send the current batch to every subscriber, only while accuracy is above the threshold."""
        accuracy = self._accuracy()
        with self.poller.lock:
            view = current_prediction_view(self.poller.ctx)
        if view is None:
            return 0, "no predictions available"
        if accuracy['status'] != 'ok' or accuracy['combined_accuracy_percent'] <= settings.accuracy_threshold:
            logger.info("Prediction broadcast skipped, accuracy not above the threshold")
            return 0, "accuracy not above the threshold"
        return self.send_to_all(format_predictions(view, accuracy, self.clock())), "sent"
