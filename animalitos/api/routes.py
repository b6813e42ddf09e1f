from fastapi import APIRouter, Depends, HTTPException, Header, Request
from animalitos.api.schemas import (
    PredictionOut, LastResultOut, AccuracyOut, StatsOut, HistoryOut, AnimalHistoryOut,
    TemperatureOut, ForceUpdateOut, MessageIn, SendOut, StoreStatsOut,
)
from animalitos.config import settings
from animalitos.core.validation import is_valid_code
from animalitos.db.crud import count_draw_records
from animalitos.services import (
    current_prediction_view, last_results_view, accuracy_view, comprehensive_stats,
    prediction_history_view, animal_history_view, temperature_view,
)
from animalitos.worker import Poller

router = APIRouter(prefix="/api")


def _auth(api_key_header: str | None = Header(default=None, alias="X-API-Key")):
    if settings.api_key and api_key_header != settings.api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_poller(request: Request) -> Poller:
    poller = getattr(request.app.state, "poller", None)
    if poller is None:
        raise HTTPException(status_code=503, detail="Service starting")
    return poller


def get_notifier(request: Request):
    notifier = getattr(request.app.state, "notifier", None)
    if notifier is None:
        raise HTTPException(status_code=503, detail="Telegram not configured")
    return notifier


@router.get('/predictions', response_model=PredictionOut)
def predictions(poller: Poller = Depends(get_poller)):
    with poller.lock:
        view = current_prediction_view(poller.ctx)
    if view is None:
        return {'status': 'insufficient data'}
    return dict(view, status='ok')


@router.get('/last-results', response_model=list[LastResultOut])
def last_results(limit: int = 10, poller: Poller = Depends(get_poller)):
    if limit < 1:
        raise HTTPException(400, detail="limit must be positive")
    recent = poller.live_recent_draws(limit)
    with poller.lock:
        return last_results_view(poller.ctx, recent, limit)


@router.get('/effectiveness', response_model=AccuracyOut)
def effectiveness(poller: Poller = Depends(get_poller)):
    recent = poller.live_recent_draws(settings.accuracy_window)
    with poller.lock:
        return accuracy_view(poller.ctx, recent, settings.accuracy_window)


@router.get('/effectiveness-stats', response_model=StatsOut)
def effectiveness_stats(poller: Poller = Depends(get_poller)):
    recent = poller.live_recent_draws(settings.accuracy_window)
    with poller.lock:
        return comprehensive_stats(poller.ctx, recent, poller.clock())


@router.get('/prediction-history', response_model=HistoryOut)
def prediction_history(limit: int | None = None, poller: Poller = Depends(get_poller)):
    with poller.lock:
        return {'items': prediction_history_view(poller.ctx, limit)}


@router.get('/animal-history/{number}', response_model=AnimalHistoryOut)
def animal_history(number: int, poller: Poller = Depends(get_poller)):
    if not is_valid_code(number):
        raise HTTPException(400, detail="number must be 0..37")
    with poller.lock:
        return animal_history_view(poller.ctx, number, poller.clock())


@router.get('/stats', response_model=StoreStatsOut)
def stats(poller: Poller = Depends(get_poller)):
    with poller.session_factory() as session:
        total = count_draw_records(session)
    with poller.lock:
        draws = list(poller.ctx.draws)
    return {
        'total_results': total,
        'last_update': draws[0].occurred_at.isoformat() if draws else None,
        'unique_animals': len({d.numeric_code for d in draws}),
    }


@router.get('/temperature', response_model=TemperatureOut)
def temperature(poller: Poller = Depends(get_poller)):
    with poller.lock:
        return temperature_view(poller.ctx)


@router.post('/force-update', response_model=ForceUpdateOut)
def force_update(poller: Poller = Depends(get_poller), ok=Depends(_auth)):
    outcome = poller.force_update()
    if outcome is None:
        return {'ok': False, 'error': poller.last_error}
    return {
        'ok': True,
        'inserted': outcome.inserted,
        'new_draws': len(outcome.fresh),
        'resolved': outcome.resolved is not None,
    }


@router.post('/telegram-test', response_model=SendOut)
def telegram_test(notifier=Depends(get_notifier), ok=Depends(_auth)):
    delivered = notifier.send_to_all("🧪 <b>Test message</b>\n\nAlerts are working.")
    return {'ok': delivered > 0, 'delivered': delivered}


@router.post('/telegram-send-message', response_model=SendOut)
def telegram_send_message(data: MessageIn, notifier=Depends(get_notifier), ok=Depends(_auth)):
    delivered = notifier.send_to_all(data.text)
    return {'ok': delivered > 0, 'delivered': delivered}


@router.post('/telegram-predictions', response_model=SendOut)
def telegram_predictions(notifier=Depends(get_notifier), ok=Depends(_auth)):
    delivered, reason = notifier.broadcast_predictions()
    return {'ok': delivered > 0, 'delivered': delivered, 'message': reason}
